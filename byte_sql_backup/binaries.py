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

import functools
import logging
import shutil

from .errors import MissingDependencyError

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=None)
def find_binary(name):
    """Full path of an external binary, looked up once per process."""
    path = shutil.which(name)
    if not path:
        raise MissingDependencyError(f'Missing local installation of: {name}')
    logger.debug('Using %s from %s', name, path)
    return path
