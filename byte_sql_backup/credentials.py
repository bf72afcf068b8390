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

import getpass
import json
import os
from dataclasses import dataclass

from lxml import etree

from .errors import FileAccessError

DEFAULT_AUTH_FILE = '~/.byte-auth.json'

DEFAULT_DB_HOST = 'localhost'
DEFAULT_DB_PORT = 3306
DEFAULT_DB_USER = 'root'

LOCAL_XML_CONNECTION = 'global/resources/default_setup/connection'
PASSWORD_ENV = 'MYSQL_PWD'


@dataclass(frozen=True)
class Credentials:
    """Login credentials for the hosting panel."""

    user: str
    password: str

    def __post_init__(self):
        for name in ('user', 'password'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f'Invalid {name} supplied')

    def __repr__(self):
        return f'Credentials(user={self.user!r}, password=***)'

    @classmethod
    def from_auth_file(cls, path=DEFAULT_AUTH_FILE):
        path = os.path.expanduser(path)
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except OSError as e:
            raise FileAccessError(f'Cannot read authentication file: {path} ({e.strerror})') from e
        except ValueError as e:
            raise FileAccessError(f'Authentication file is corrupted: {path}') from e

        if not isinstance(data, dict) or 'username' not in data or 'password' not in data:
            raise FileAccessError(f'Authentication file is corrupted: {path}')

        try:
            return cls(data['username'], data['password'])
        except ValueError as e:
            raise FileAccessError(f'Authentication file is corrupted: {path}') from e

    @classmethod
    def from_prompt(cls):
        user = input('Byte user: ').strip()
        password = getpass.getpass('Byte password: ')
        return cls(user, password)


@dataclass(frozen=True)
class DatabaseCredentials:
    """Connection settings of the local database the dump is imported into."""

    database: str
    password: str = ''
    user: str = DEFAULT_DB_USER
    host: str = DEFAULT_DB_HOST
    port: int = DEFAULT_DB_PORT

    def __post_init__(self):
        for name in ('database', 'user', 'host'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f'Invalid {name} supplied: {value!r}')
        if not isinstance(self.password, str):
            raise ValueError('Invalid password supplied')
        if isinstance(self.port, bool) or not isinstance(self.port, int) or self.port < 1:
            raise ValueError(f'Invalid port supplied: {self.port!r}')

    def __repr__(self):
        return (f'DatabaseCredentials(database={self.database!r}, user={self.user!r}, '
                f'host={self.host!r}, port={self.port!r}, password=***)')

    def client_args(self, binary, select_database=True):
        """Command line for the MySQL client connecting with these settings."""
        args = [binary, f'--host={self.host}', f'--port={self.port}']
        if select_database:
            args.append(f'--database={self.database}')
        args.append(f'--user={self.user}')
        return args

    def client_env(self):
        """Environment for the MySQL client, carrying the password off the command line."""
        env = dict(os.environ)
        env.pop(PASSWORD_ENV, None)
        if self.password:
            env[PASSWORD_ENV] = self.password
        return env

    @classmethod
    def from_prompt(cls, host=DEFAULT_DB_HOST, port=DEFAULT_DB_PORT, user=DEFAULT_DB_USER, database=None):
        host = input(f'Host [{host}]: ').strip() or host
        port = input(f'Port [{port}]: ').strip() or port
        prompt = f'Database [{database}]: ' if database else 'Database: '
        database = input(prompt).strip() or database
        user = input(f'User [{user}]: ').strip() or user
        password = getpass.getpass('Password: ')
        try:
            port = int(port)
        except ValueError:
            raise ValueError(f'Invalid port supplied: {port!r}')
        return cls(database=database, password=password, user=user, host=host, port=port)

    @classmethod
    def from_local_xml(cls, path):
        """Read the default connection of a Magento app/etc/local.xml."""
        connection = _load_connection(path)[1]

        def text(tag):
            node = connection.find(tag)
            if node is None or node.text is None:
                return None
            return node.text.strip()

        values = {
            'host': text('host'),
            'user': text('username'),
            'password': text('password'),
            'database': text('dbname'),
        }
        port = text('port')
        if port:
            try:
                values['port'] = int(port)
            except ValueError as e:
                raise FileAccessError(f'Invalid port configured in {path}: {port!r}') from e
        # An unset element keeps the default of its field.
        values = {key: value for key, value in values.items() if value is not None}
        if 'database' not in values:
            raise FileAccessError(f'No database name configured in {path}')
        return cls(**values)

    def save_to_local_xml(self, path):
        """Persist these settings as the default connection of a local.xml."""
        if not os.access(path, os.W_OK):
            raise FileAccessError(f'File does not exist or could not be written to: {path}')
        tree, connection = _load_connection(path)

        for tag, value in (('host', self.host), ('port', str(self.port)), ('username', self.user),
                           ('password', self.password), ('dbname', self.database)):
            node = connection.find(tag)
            if node is None:
                node = etree.SubElement(connection, tag)
            node.text = etree.CDATA(value)

        tree.write(path, xml_declaration=True, encoding='utf-8')


def _load_connection(path):
    if not os.path.isfile(path) or not os.access(path, os.R_OK):
        raise FileAccessError(f'File does not exist or is not readable: {path}')
    try:
        tree = etree.parse(path, etree.XMLParser(strip_cdata=False))
    except etree.XMLSyntaxError as e:
        raise FileAccessError(f'Could not parse {path}: {e}') from e

    connection = tree.getroot().find(LOCAL_XML_CONNECTION)
    if connection is None:
        raise FileAccessError(f'No default_setup connection found in {path}')
    return tree, connection
