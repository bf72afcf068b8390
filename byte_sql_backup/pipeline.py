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

from .errors import DownloadIntegrityError, ExtractionError
from .extractor import ArchiveExtractor
from .fetcher import DOWNLOAD_CHUNK_SIZE, download, is_downloaded
from .importer import LocalImporter
from .sanitizer import SENSITIVE_TABLES, rewrite_definers, strip_sensitive_tables

logger = logging.getLogger(__name__)


def run_pipeline(session, backup, db, extractor=None, importer=None, import_user=None, staging_dir=None,
                 chunk_size=DOWNLOAD_CHUNK_SIZE, strip_tables=True, tables=SENSITIVE_TABLES,
                 create_database=False, skip_import=False, remove_imported=False):
    """Download, extract, sanitize and import one backup.

    Returns the paths of the sanitized dump files. Any failing stage aborts
    the whole run.
    """
    extractor = extractor or ArchiveExtractor()
    importer = importer or LocalImporter()
    if import_user is None:
        import_user = db.user

    # Download
    archive = backup.staging_path(staging_dir)
    if is_downloaded(backup, archive):
        logger.info('Found %s with the expected size, skipping the download', archive)
    elif not download(session, backup, archive, chunk_size=chunk_size):
        raise DownloadIntegrityError(f'Download of {backup.file_name} is incomplete, please try again')

    # Extract
    files = extractor.list_files(archive)
    if not files:
        raise ExtractionError(f'No files found inside {archive}')
    extractor.extract(archive)
    # The listing repeats the directory prefix the archive was given with.
    dumps = [os.path.join(os.path.dirname(archive), os.path.basename(name)) for name in files]

    # Sanitize
    for dump in dumps:
        rewrite_definers(dump, import_user)
        if strip_tables:
            strip_sensitive_tables(dump, tables)

    if skip_import:
        return dumps

    # Import
    if create_database:
        importer.create_database_if_absent(db)
    for dump in dumps:
        importer.import_file(db, dump)
        if remove_imported:
            os.remove(dump)
            logger.info('Removed %s', dump)
    return dumps
