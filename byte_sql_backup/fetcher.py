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
from urllib.parse import quote

import requests

from .errors import FileAccessError
from .session import request

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = 'dbbackups/{domain}/{database}/{file_name}'
DOWNLOAD_CHUNK_SIZE = 1024


def download_path(backup):
    return DOWNLOAD_PATH.format(domain=quote(backup.domain, safe=''),
                                database=quote(backup.database, safe=''),
                                file_name=quote(backup.file_name, safe=''))


def is_downloaded(backup, path=None):
    """Whether a file of the expected size already sits at the staging path."""
    path = path or backup.staging_path()
    return os.path.isfile(path) and os.path.getsize(path) == backup.size_bytes


def download(session, backup, destination=None, chunk_size=DOWNLOAD_CHUNK_SIZE):
    """Stream a backup to disk.

    Returns whether the local file ends up with exactly the size the panel
    announced. A False result is worth a retry; nothing is retried here.
    """
    destination = destination or backup.staging_path()
    logger.info('Downloading %s to %s', backup.file_name, destination)

    try:
        with request(session, 'GET', download_path(backup), stream=True) as response:
            if response.status_code != 200:
                logger.error('Download of %s answered %s', backup.file_name, response.status_code)
                return False
            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as e:
        logger.error('Download of %s failed: %s', backup.file_name, e)
        return False
    except OSError as e:
        raise FileAccessError(f'Could not write {destination}: {e}') from e

    size = os.path.getsize(destination)
    if size != backup.size_bytes:
        logger.error('Downloaded %d bytes of %s, expected %d', size, backup.file_name, backup.size_bytes)
        return False
    return True
