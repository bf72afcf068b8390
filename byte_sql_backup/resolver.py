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

import json
import logging
from urllib.parse import quote

import requests

from .errors import ResolutionError
from .markup import ByteMarkup, decode_json
from .models import Account
from .session import request

logger = logging.getLogger(__name__)

OVERVIEW_PATH = 'protected/overzicht/'
DOMAINS_PATH = 'protected/overzicht/domains.cgi'
DATABASES_PATH = 'dbbackups/{domain}/json/'
BACKUPS_PATH = 'dbbackups/{domain}/{database}/json/'

MAX_BACKUPS = 20


class Resolver:
    """Walks the panel from accounts down to the backups of one database."""

    def __init__(self, markup=None):
        self.markup = markup if markup is not None else ByteMarkup()

    def _fetch(self, session, method, path, data=None):
        try:
            return request(session, method, path, data=data)
        except requests.RequestException as e:
            raise ResolutionError(f'Request to {path} failed: {e}') from e

    def _fetch_json(self, session, path):
        response = self._fetch(session, 'GET', path)
        # The panel answers unknown domains and databases with a client error
        if 400 <= response.status_code < 500:
            logger.debug('%s answered %s', path, response.status_code)
            return []
        if response.status_code >= 500:
            raise ResolutionError(f'Panel error {response.status_code} for {path}')
        payload = decode_json(response.text)
        if payload is None:
            logger.warning('Could not decode the listing at %s', path)
            return []
        return payload

    def list_accounts(self, session):
        response = self._fetch(session, 'GET', OVERVIEW_PATH)
        page = response.text

        accounts = []
        for account_id in self.markup.account_ids(page):
            name = self.markup.account_name(page, account_id)
            if not name:
                logger.debug('No name found for account #%s, skipping it', account_id)
                continue
            accounts.append(Account(account_id, name))
        return accounts

    def primary_account(self, session, credentials, accounts=None):
        """The account matching the numeric login name, if any."""
        try:
            account_id = int(credentials.user)
        except ValueError:
            return None

        if accounts is None:
            accounts = self.list_accounts(session)
        for account in accounts:
            if account.id == account_id:
                return account
        return None

    def list_domains(self, session, account):
        response = self._fetch(session, 'POST', DOMAINS_PATH,
                               data={'json': json.dumps({'regid': account.id})})
        return self.markup.domains(response.text)

    def list_databases(self, session, domain):
        payload = self._fetch_json(session, DATABASES_PATH.format(domain=quote(domain, safe='')))
        return self.markup.databases(payload)

    def list_backups(self, session, domain, database):
        path = BACKUPS_PATH.format(domain=quote(domain, safe=''), database=quote(database, safe=''))
        return self.markup.backups(self._fetch_json(session, path), domain, database)

    def latest_backups(self, session, domain, database, limit=MAX_BACKUPS):
        backups = self.list_backups(session, domain, database)
        if len(backups) > limit:
            logger.warning('Found %d backups for %s/%s, only showing the first %d',
                           len(backups), domain, database, limit)
        return backups[:limit]
