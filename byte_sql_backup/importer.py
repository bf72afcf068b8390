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

import logging
import os
import subprocess

from .binaries import find_binary
from .errors import DatabaseImportError, FileAccessError

logger = logging.getLogger(__name__)

CLIENT_BINARY = 'mysql'


class LocalImporter:
    """Imports dumps through the command line client of the local database.

    The client prints nothing on standard output when it succeeds, so any
    output there is treated as a failure.
    """

    def __init__(self, binary=CLIENT_BINARY):
        self.binary = binary

    def _run(self, args, env, stdin=None):
        try:
            result = subprocess.run(args, stdin=stdin, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env)
        except OSError as e:
            raise DatabaseImportError(f'Could not run {self.binary}: {e}') from e

        output = result.stdout.decode('utf-8', 'replace').strip()
        errors = result.stderr.decode('utf-8', 'replace').strip()
        if result.returncode != 0 or output:
            raise DatabaseImportError(errors or output or f'{self.binary} exited with status {result.returncode}')
        if errors:
            logger.warning('%s: %s', self.binary, errors)

    def create_database_if_absent(self, db):
        name = db.database.replace('`', '``')
        args = db.client_args(find_binary(self.binary), select_database=False)
        args.append(f'--execute=CREATE DATABASE IF NOT EXISTS `{name}`')
        logger.info('Creating database %s on %s if it does not exist', db.database, db.host)
        self._run(args, db.client_env())

    def import_file(self, db, path):
        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            raise FileAccessError(f'File does not exist or is not readable: {path}')

        args = db.client_args(find_binary(self.binary))
        logger.info('Importing %s into %s on %s', path, db.database, db.host)
        with open(path, 'rb') as f:
            self._run(args, db.client_env(), stdin=f)
        return True
