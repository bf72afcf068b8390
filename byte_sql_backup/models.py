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

import datetime
import logging
import os
import tempfile
from dataclasses import dataclass

logger = logging.getLogger(__name__)

BACKUP_ENTRY_FIELDS = ('database', 'filename', 'size_bytes', 'creation_utc_datetime')


def _require_string(name, value):
    if not isinstance(value, str) or not value:
        raise ValueError(f'Invalid {name} supplied: {value!r}')


def _require_positive_int(name, value):
    # bool is an int subclass, but never a valid size or id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f'Invalid {name} supplied: {value!r}')


@dataclass(frozen=True)
class Account:
    """A registrant: the panel's top-level owner of domains."""

    id: int
    name: str

    def __post_init__(self):
        _require_positive_int('id', self.id)
        _require_string('name', self.name)

    def __str__(self):
        return f'{self.name} (#{self.id})'


@dataclass(frozen=True)
class Backup:
    """A database backup as listed by the panel."""

    domain: str
    database: str
    file_name: str
    size_bytes: int
    created_at: datetime.datetime

    def __post_init__(self):
        _require_string('domain', self.domain)
        _require_string('database', self.database)
        _require_string('file_name', self.file_name)
        _require_positive_int('size_bytes', self.size_bytes)
        if not isinstance(self.created_at, datetime.datetime):
            raise ValueError(f'Invalid created_at supplied: {self.created_at!r}')

    def staging_path(self, directory=None):
        """Local path the backup archive is downloaded to.

        Only the file name is used, so equally named backups of different
        domains end up at the same path.
        """
        return os.path.join(directory or tempfile.gettempdir(), self.file_name)

    def __str__(self):
        return f'{self.file_name} ({self.size_bytes} bytes, {self.created_at:%Y-%m-%d %H:%M} UTC)'


def parse_utc_datetime(value):
    if not isinstance(value, str):
        raise ValueError(f'Invalid datetime supplied: {value!r}')
    value = value.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def decode_backup_entry(entry, domain, database):
    """Turn one object of the panel's backup listing into a Backup.

    Returns None for entries that miss a field or carry unusable values, so a
    single malformed entry never breaks the whole listing.
    """
    if not isinstance(entry, dict):
        logger.debug('Discarding backup entry that is not an object: %r', entry)
        return None

    missing = [field for field in BACKUP_ENTRY_FIELDS if field not in entry]
    if missing:
        logger.debug('Discarding backup entry without %s: %r', ', '.join(missing), entry)
        return None

    try:
        size = entry['size_bytes']
        if isinstance(size, str):
            size = int(size)
        return Backup(
            domain=domain,
            database=database,
            file_name=entry['filename'],
            size_bytes=size,
            created_at=parse_utc_datetime(entry['creation_utc_datetime']),
        )
    except (TypeError, ValueError) as e:
        logger.debug('Discarding malformed backup entry %r: %s', entry, e)
        return None
