#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
####################################################################################
#
# Streaming rewrites of SQL dump files. Dumps are treated as plain lines of
# bytes, never parsed as SQL, so files of any size and encoding pass through
# in constant memory.
#
# Every transform copies <dump> to <dump>.src, reads the copy and writes the
# result back to <dump>. The .src copy is removed afterwards.

import logging
import os
import re
import shutil
import subprocess

from .binaries import find_binary
from .errors import FileAccessError, MissingDependencyError

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = '.src'

DEFINER_MARKER = 'DEFINER='
DEFINER_RE = re.compile(rb'DEFINER=[^@]*@')
SCAN_BINARY = 'grep'

SENSITIVE_TABLES_VERSION = '2024-06-01'

# Tables holding sessions, logs, analytics, customer data, sales and
# newsletter subscribers of a Magento 1 shop.
SENSITIVE_TABLES = (
    'core_session',
    'api_session',
    'log_customer',
    'log_quote',
    'log_summary',
    'log_summary_type',
    'log_url',
    'log_url_info',
    'log_visitor',
    'log_visitor_info',
    'log_visitor_online',
    'index_event',
    'index_process_event',
    'report_event',
    'report_viewed_product_index',
    'report_compared_product_index',
    'report_viewed_product_aggregated_daily',
    'report_viewed_product_aggregated_monthly',
    'report_viewed_product_aggregated_yearly',
    'dataflow_batch_export',
    'dataflow_batch_import',
    'customer_entity',
    'customer_entity_datetime',
    'customer_entity_decimal',
    'customer_entity_int',
    'customer_entity_text',
    'customer_entity_varchar',
    'customer_address_entity',
    'customer_address_entity_datetime',
    'customer_address_entity_decimal',
    'customer_address_entity_int',
    'customer_address_entity_text',
    'customer_address_entity_varchar',
    'sales_flat_creditmemo',
    'sales_flat_creditmemo_grid',
    'sales_flat_creditmemo_item',
    'sales_flat_invoice',
    'sales_flat_invoice_grid',
    'sales_flat_invoice_item',
    'sales_flat_order',
    'sales_flat_order_address',
    'sales_flat_order_grid',
    'sales_flat_order_item',
    'sales_flat_order_payment',
    'sales_flat_order_status_history',
    'sales_flat_quote',
    'sales_flat_quote_address',
    'sales_flat_quote_address_item',
    'sales_flat_quote_item',
    'sales_flat_quote_item_option',
    'sales_flat_quote_payment',
    'sales_flat_quote_shipping_rate',
    'sales_flat_shipment',
    'sales_flat_shipment_grid',
    'sales_flat_shipment_item',
    'sales_flat_shipment_track',
    'sales_payment_transaction',
    'newsletter_subscriber',
    'newsletter_queue_link',
    'newsletter_problem',
)


def check_file_access(path):
    """Fail before opening anything when a dump cannot be rewritten in place."""
    if not os.path.exists(path):
        raise FileAccessError(f'File does not exist: {path}')
    if not os.path.isfile(path):
        raise FileAccessError(f'Not a regular file: {path}')
    if not os.access(path, os.R_OK):
        raise FileAccessError(f'File is not readable: {path}')
    if not os.access(path, os.W_OK):
        raise FileAccessError(f'File is not writable: {path}')
    directory = os.path.dirname(os.path.abspath(path))
    if not os.access(directory, os.W_OK):
        raise FileAccessError(f'Directory is not writable: {directory}')


def rewrite_in_place(path, transform):
    """Feed the lines of a dump through transform and store the result.

    transform takes an iterable of byte lines and yields the lines to keep.
    When anything fails the dump is put back as it was.
    """
    check_file_access(path)
    source = path + SOURCE_SUFFIX

    try:
        shutil.copyfile(path, source)
    except OSError as e:
        if os.path.exists(source):
            os.remove(source)
        raise FileAccessError(f'Could not copy {path} to {source}: {e}') from e

    try:
        with open(source, 'rb') as src, open(path, 'wb') as dst:
            dst.writelines(transform(src))
    except OSError as e:
        os.replace(source, path)
        raise FileAccessError(f'Could not rewrite {path}: {e}') from e
    except BaseException:
        os.replace(source, path)
        raise
    os.remove(source)


def contains_definers(path):
    """Whether the dump mentions a definer.

    A dump that cannot be scanned is assumed to contain definers.
    """
    try:
        grep = find_binary(SCAN_BINARY)
    except MissingDependencyError as e:
        logger.warning('%s, assuming %s needs definer rewriting', e, path)
        return True

    try:
        result = subprocess.run([grep, '-q', '-F', DEFINER_MARKER, path],
                                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.warning('Could not scan %s (%s), assuming it needs definer rewriting', path, e)
        return True

    if result.returncode not in (0, 1):
        logger.warning('Could not scan %s, assuming it needs definer rewriting', path)
        return True
    return result.returncode == 0


def rewrite_definers(path, import_user):
    """Point every DEFINER clause of the dump at the importing user.

    Returns the number of changed lines.
    """
    if not import_user:
        raise ValueError('Invalid import user supplied')

    check_file_access(path)
    if not contains_definers(path):
        logger.info('No definers found in %s', path)
        return 0

    replacement = b'DEFINER=`' + import_user.replace('`', '``').encode('utf-8') + b'`@'
    changed = 0

    def transform(lines):
        nonlocal changed
        for line in lines:
            new_line, count = DEFINER_RE.subn(lambda match: replacement, line)
            if count:
                changed += 1
            yield new_line

    rewrite_in_place(path, transform)
    logger.info('Rewrote definers on %d lines of %s to %s', changed, path, import_user)
    return changed


def sensitive_insert_re(tables):
    names = b'|'.join(re.escape(table.encode('utf-8')) for table in tables)
    return re.compile(rb'^INSERT INTO `?(?:' + names + rb')`? ')


def strip_sensitive_tables(path, tables=SENSITIVE_TABLES):
    """Drop the INSERT lines of the given tables from a dump.

    Works line by line: an INSERT statement spanning several lines only loses
    its first line. Returns the number of dropped lines.
    """
    check_file_access(path)
    tables = list(tables)
    if not tables:
        return 0

    pattern = sensitive_insert_re(tables)
    dropped = 0

    def transform(lines):
        nonlocal dropped
        for line in lines:
            if pattern.match(line):
                dropped += 1
                continue
            yield line

    rewrite_in_place(path, transform)
    logger.info('Dropped %d lines of sensitive table data from %s', dropped, path)
    return dropped
