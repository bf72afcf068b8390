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
# Error kinds of the backup pipeline. Every kind carries the exit status the
# command line tool terminates with.


class ByteBackupError(Exception):
    exit_code = 1


class AuthError(ByteBackupError):
    """CSRF token extraction or login against the panel failed."""
    exit_code = 3


class ResolutionError(ByteBackupError):
    """No domain, database or backup left to select from."""
    exit_code = 4


class DownloadIntegrityError(ByteBackupError):
    """The downloaded file does not match the size announced by the panel."""
    exit_code = 5


class MissingDependencyError(ByteBackupError):
    """A required external binary is not installed."""
    exit_code = 6


class FileAccessError(ByteBackupError):
    """A path is missing, unreadable, unwritable or not a regular file."""
    exit_code = 7


class DatabaseImportError(ByteBackupError):
    """The local database client reported a problem while importing."""
    exit_code = 8


class ExtractionError(ByteBackupError):
    """The decompression tool failed or the archive turned out empty."""
    exit_code = 9
