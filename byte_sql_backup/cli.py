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

import argparse
import getpass
import logging
import sys

from . import __version__
from .credentials import (DEFAULT_AUTH_FILE, DEFAULT_DB_HOST, DEFAULT_DB_PORT, DEFAULT_DB_USER, Credentials,
                          DatabaseCredentials)
from .errors import ByteBackupError, FileAccessError, ResolutionError
from .fetcher import DOWNLOAD_CHUNK_SIZE
from .pipeline import run_pipeline
from .resolver import MAX_BACKUPS, Resolver
from .session import AUTH_ENDPOINT, DEFAULT_TIMEOUT, SERVICE_ENDPOINT, login

logger = logging.getLogger(__name__)


def load_credentials(auth_file):
    """Panel credentials from the auth file, or asked for when that fails."""
    try:
        return Credentials.from_auth_file(auth_file)
    except FileAccessError as e:
        logger.info('%s, asking for credentials', e)
    return Credentials.from_prompt()


def choose(items, label, preset=None, describe=str, by_number=True):
    """Pick one item: the preset, the only one, or whatever the user selects."""
    if not items:
        raise ResolutionError(f'No {label} available')

    if preset is not None:
        for item in items:
            if describe(item) == preset or str(item) == preset:
                return item
        if by_number and preset.isdigit() and 1 <= int(preset) <= len(items):
            return items[int(preset) - 1]
        raise ResolutionError(f'Unknown {label}: {preset}')

    if len(items) == 1:
        print(f'Using {label}: {describe(items[0])}')
        return items[0]

    for number, item in enumerate(items, 1):
        print(f'  [{number}] {describe(item)}')
    while True:
        try:
            answer = input(f'Select a {label} [1-{len(items)}]: ').strip()
        except EOFError:
            raise ResolutionError(f'No {label} selected')
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return items[int(answer) - 1]
        print(f'Please enter a number between 1 and {len(items)}', file=sys.stderr)


def load_database_credentials(args):
    if args.local_xml:
        return DatabaseCredentials.from_local_xml(args.local_xml)
    if args.db_name:
        password = args.db_password
        if password is None:
            password = getpass.getpass(f'Password for {args.db_user}@{args.db_host}: ')
        return DatabaseCredentials(database=args.db_name, password=password, user=args.db_user,
                                   host=args.db_host, port=args.db_port)
    print('Requesting database credentials:')
    return DatabaseCredentials.from_prompt(host=args.db_host, port=args.db_port, user=args.db_user)


def select_backup(session, resolver, credentials, args):
    # Domain
    if args.domain:
        domain = args.domain
    else:
        accounts = resolver.list_accounts(session)
        preset = args.account
        if preset is None:
            primary = resolver.primary_account(session, credentials, accounts)
            if primary is not None:
                preset = str(primary.id)
        account = choose(accounts, 'account', preset, describe=lambda a: str(a.id), by_number=False)
        domain = choose(resolver.list_domains(session, account), 'domain')

    database = choose(resolver.list_databases(session, domain), 'database', args.database)
    backups = resolver.latest_backups(session, domain, database, limit=args.max_backups)
    if args.list:
        return backups
    return choose(backups, 'backup', args.backup, describe=lambda b: b.file_name)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Downloads a database backup from the Byte service panel, strips sensitive data '
                    'from the SQL dump and imports it into a local database.',
        epilog='version: {}'.format(__version__))

    panel = parser.add_argument_group('panel')
    panel.add_argument('--auth-file', default=DEFAULT_AUTH_FILE,
                       help='JSON file with "username" and "password" for the panel; when it cannot be '
                            'read the credentials are asked for (default: %(default)s)')
    panel.add_argument('--service-url', default=SERVICE_ENDPOINT, help='panel base url (default: %(default)s)')
    panel.add_argument('--auth-url', default=AUTH_ENDPOINT, help='panel login url (default: %(default)s)')
    panel.add_argument('--timeout', type=int, default=DEFAULT_TIMEOUT,
                       help='timeout in seconds for the requests (default: %(default)s)')

    selection = parser.add_argument_group('backup selection')
    selection.add_argument('--account', default=None,
                           help='account id (default: the account of the login user, or asked for)')
    selection.add_argument('--domain', default=None, help='domain name, skips the account lookup')
    selection.add_argument('--database', default=None, help='remote database name')
    selection.add_argument('--backup', default=None,
                           help='backup file name or its number in the listing, 1 being the most recent')
    selection.add_argument('--max-backups', type=int, default=MAX_BACKUPS,
                           help='number of backups to list (default: %(default)s)')
    selection.add_argument('--list', action='store_true', default=False,
                           help='only list the available backups')

    staging = parser.add_argument_group('download')
    staging.add_argument('-o', '--staging-dir', default=None,
                         help='directory the backup is downloaded and extracted in (default: the system '
                              'temporary directory)')
    staging.add_argument('--chunk-size', type=int, default=DOWNLOAD_CHUNK_SIZE,
                         help='download chunk size in bytes (default: %(default)s)')

    local = parser.add_argument_group('local database')
    local.add_argument('--db-host', default=DEFAULT_DB_HOST, help='(default: %(default)s)')
    local.add_argument('--db-port', type=int, default=DEFAULT_DB_PORT, help='(default: %(default)s)')
    local.add_argument('--db-user', default=DEFAULT_DB_USER, help='(default: %(default)s)')
    local.add_argument('--db-password', default=None, help='asked for when omitted')
    local.add_argument('--db-name', default=None, help='local database name; asked for when omitted')
    local.add_argument('--local-xml', default=None,
                       help='read the local database settings from a Magento app/etc/local.xml')
    local.add_argument('--write-local-xml', default=None,
                       help='store the local database settings in this Magento app/etc/local.xml')
    local.add_argument('--create-database', action='store_true', default=False,
                       help='create the local database when it does not exist')
    local.add_argument('--skip-import', action='store_true', default=False,
                       help='stop after sanitizing the dump')
    local.add_argument('--remove-imported', action='store_true', default=False,
                       help='remove the extracted dump once it has been imported')

    sanitizing = parser.add_argument_group('sanitizing')
    sanitizing.add_argument('--import-user', default=None,
                            help='user the DEFINER clauses are rewritten to (default: the local database user)')
    sanitizing.add_argument('--keep-sensitive-tables', action='store_true', default=False,
                            help='do not strip session, log, customer and sales data from the dump')

    parser.add_argument('-v', '--verbose', action='store_true', default=False, help='show debug output')
    return parser


def run(args):
    credentials = load_credentials(args.auth_file)
    session = login(credentials, base_url=args.service_url, auth_endpoint=args.auth_url, timeout=args.timeout)
    resolver = Resolver()

    selected = select_backup(session, resolver, credentials, args)
    if args.list:
        for number, backup in enumerate(selected, 1):
            print(f'  [{number}] {backup}')
        return []

    db = None
    if not args.skip_import:
        db = load_database_credentials(args)
        if args.write_local_xml:
            db.save_to_local_xml(args.write_local_xml)
            print(f'Saved database settings to: {args.write_local_xml}')

    return run_pipeline(
        session, selected, db,
        import_user=args.import_user or (db.user if db else args.db_user),
        staging_dir=args.staging_dir,
        chunk_size=args.chunk_size,
        strip_tables=not args.keep_sensitive_tables,
        create_database=args.create_database,
        skip_import=args.skip_import,
        remove_imported=args.remove_imported,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s: %(message)s')

    if args.skip_import and (args.create_database or args.remove_imported or args.write_local_xml):
        print('Error: --skip-import cannot be combined with --create-database, --remove-imported '
              'or --write-local-xml', file=sys.stderr)
        sys.exit(2)

    if args.chunk_size < 1:
        print('Error: --chunk-size must be positive', file=sys.stderr)
        sys.exit(2)

    try:
        dumps = run(args)
    except ByteBackupError as e:
        print('Error: {}'.format(e), file=sys.stderr)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print('Aborted', file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print('Error: {}'.format(e), file=sys.stderr)
        sys.exit(1)

    for dump in dumps:
        print('{} SQL dump: {}'.format('Sanitized' if args.skip_import else 'Successfully imported', dump))
