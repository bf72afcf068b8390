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
# Parsing rules for the pages of the panel. Everything that depends on the
# panel's markup lives here, so a new panel version only needs a new
# PanelMarkup implementation.

import abc
import json
import logging
import re

from lxml import etree, html

from .models import decode_backup_entry

logger = logging.getLogger(__name__)


class PanelMarkup(abc.ABC):

    @abc.abstractmethod
    def account_ids(self, page):
        """Numeric account identifiers found on the overview page, in page order."""

    @abc.abstractmethod
    def account_name(self, page, account_id):
        """Display name of one account, or None when it cannot be found."""

    @abc.abstractmethod
    def domains(self, page):
        """Domain names listed on a domain table fragment."""

    @abc.abstractmethod
    def databases(self, payload):
        """Database names from the decoded database listing."""

    @abc.abstractmethod
    def backups(self, payload, domain, database):
        """Backups from the decoded backup listing, malformed entries dropped."""


class ByteMarkup(PanelMarkup):
    """Markup of the Byte service panel overview pages."""

    ACCOUNT_ID_RE = re.compile(r'''toggleRegistrant\(['"](\d+)['"]\)''')

    def account_ids(self, page):
        ids = []
        for match in self.ACCOUNT_ID_RE.finditer(page):
            account_id = int(match.group(1))
            if account_id not in ids:
                ids.append(account_id)
        return ids

    def account_name(self, page, account_id):
        # Looked up per account, an anchor that cannot be found drops only that account
        tree = _parse_html(page)
        if tree is None:
            return None

        for quote in ("'", '"'):
            call = f'toggleRegistrant({quote}{account_id}{quote})'
            for anchor in tree.xpath('//a[contains(@onclick, $call)]', call=call):
                name = _text_after_nbsp(anchor)
                if name:
                    return name
        return None

    def domains(self, page):
        tree = _parse_html(page)
        if tree is None:
            return []
        names = (anchor.text_content().strip() for anchor in tree.xpath('//td/a'))
        return [name for name in names if name]

    def databases(self, payload):
        if not isinstance(payload, list):
            return []
        names = []
        for entry in payload:
            if isinstance(entry, dict) and isinstance(entry.get('database'), str) and entry['database']:
                if entry['database'] not in names:
                    names.append(entry['database'])
            else:
                logger.debug('Discarding database entry %r', entry)
        return names

    def backups(self, payload, domain, database):
        if not isinstance(payload, list):
            return []
        backups = (decode_backup_entry(entry, domain, database) for entry in payload)
        return [backup for backup in backups if backup is not None]


def decode_json(content):
    """Decode a JSON listing, None when the body is no JSON at all."""
    try:
        return json.loads(content)
    except ValueError:
        return None


def _parse_html(page):
    if not page or not page.strip():
        return None
    try:
        return html.fromstring(page)
    except (ValueError, etree.ParserError):
        return None


def _text_after_nbsp(anchor):
    # The name follows an icon and a non-breaking space inside the anchor
    for text in anchor.xpath('.//text()'):
        if '\xa0' in text:
            name = text.split('\xa0', 1)[1].strip()
            if name:
                return name
    return None
