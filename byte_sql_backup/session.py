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
# Cookie based session against the Byte service panel. The panel has no API,
# so logging in means replaying what the browser does: fetch the CSRF cookie
# from the login page, then post the login form to the auth domain.
#
# There is no retry logic on purpose, repeated failed logins lock the account.

import logging
import re
from urllib.parse import urljoin

import requests
from lxml import etree, html

from .errors import AuthError

logger = logging.getLogger(__name__)

SERVICE_ENDPOINT = 'https://service.byte.nl/'
# The trailing slash matters: the panel answers a 301 otherwise and the
# redirected request loses the form data.
AUTH_ENDPOINT = 'https://auth.byte.nl/login/'
LOGIN_PATH = 'login'

DEFAULT_TIMEOUT = 60

CSRF_TOKEN_RE = re.compile(r'csrftoken=([^;]+);')


class PanelSession:
    """An HTTP session bound to one panel login.

    The cookie jar of the underlying requests session is the login: the
    session stays valid as long as this object is kept around.
    """

    def __init__(self, base_url=SERVICE_ENDPOINT, timeout=DEFAULT_TIMEOUT, http=None):
        self.base_url = base_url
        self.timeout = timeout
        self.http = http if http is not None else requests.Session()
        self.authenticated = False
        self.user = None

    def url(self, path):
        return urljoin(self.base_url, path)

    def __repr__(self):
        state = 'authenticated' if self.authenticated else 'anonymous'
        return f'<PanelSession {self.base_url} {state}>'


def extract_csrf_token(response):
    match = CSRF_TOKEN_RE.search(response.headers.get('Set-Cookie', ''))
    return match.group(1) if match else None


def is_login_form(response):
    """Whether the panel answered with its login form again."""
    if not response.content:
        return False
    try:
        tree = html.fromstring(response.content)
    except (ValueError, etree.ParserError):
        return False
    has_token = bool(tree.xpath("//form//input[@name='csrfmiddlewaretoken']"))
    has_password = bool(tree.xpath("//form//input[@type='password']"))
    return has_token and has_password


def login(credentials, base_url=SERVICE_ENDPOINT, auth_endpoint=AUTH_ENDPOINT, timeout=DEFAULT_TIMEOUT, http=None):
    """Log in to the panel and return an authenticated PanelSession."""
    session = PanelSession(base_url=base_url, timeout=timeout, http=http)

    try:
        # Fetch the CSRF middleware token, the panel answers this with a 403
        csrf_response = session.http.get(session.url(LOGIN_PATH), timeout=timeout)
        token = extract_csrf_token(csrf_response)
        if token is None:
            raise AuthError('Did not receive a CSRF token in the cookie headers: '
                            f'{csrf_response.headers.get("Set-Cookie", "")!r}')

        # Login, the Referer header is required by the panel
        login_response = session.http.post(
            auth_endpoint,
            data={
                'csrfmiddlewaretoken': token,
                'username': credentials.user,
                'password': credentials.password,
            },
            headers={'Referer': auth_endpoint},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise AuthError(f'Could not reach the panel: {e}') from e

    if is_login_form(login_response):
        raise AuthError('Could not log in. Please check your credentials.')

    session.authenticated = True
    session.user = credentials.user
    logger.info('Logged in to %s as %s', base_url, credentials.user)
    return session


def request(session, method, path, params=None, data=None, stream=False):
    """Issue a request on an authenticated session, reusing its cookie jar."""
    if not session.authenticated:
        raise AuthError('Session is not authenticated')
    url = session.url(path)
    logger.debug('%s %s', method, url)
    return session.http.request(method, url, params=params, data=data, stream=stream, timeout=session.timeout)
