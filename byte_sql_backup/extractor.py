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
from .errors import ExtractionError, FileAccessError

logger = logging.getLogger(__name__)

EXTRACTOR_BINARY = 'gunzip'


def parse_listing(output):
    """File names from the listing output of the decompression tool.

    The first line is a table head, the name is the last column of every
    other line.
    """
    lines = output.splitlines()[1:]
    return [line.split()[-1] for line in lines if line.strip()]


class ArchiveExtractor:

    def __init__(self, binary=EXTRACTOR_BINARY):
        self.binary = binary

    def _run(self, args, archive_path):
        if not os.path.isfile(archive_path) or not os.access(archive_path, os.R_OK):
            raise FileAccessError(f'Archive does not exist or is not readable: {archive_path}')

        command = [find_binary(self.binary)] + args + [archive_path]
        logger.debug('Running %s', ' '.join(command))
        try:
            result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                    universal_newlines=True)
        except OSError as e:
            raise ExtractionError(f'Could not run {self.binary}: {e}') from e

        if result.returncode != 0:
            raise ExtractionError(f'{self.binary} failed on {archive_path}: {result.stderr.strip()}')
        return result.stdout

    def list_files(self, archive_path):
        return parse_listing(self._run(['-l'], archive_path))

    def extract(self, archive_path):
        logger.info('Extracting %s', archive_path)
        self._run(['-fk'], archive_path)
