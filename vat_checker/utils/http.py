import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def requests_session(proxies: dict = None) -> requests.Session:
    """Session for one outbound call. No automatic retries: one round trip per provider."""
    s = requests.Session()
    if proxies:
        # explicit proxies win over whatever the environment says
        s.trust_env = False
        s.proxies.update(proxies)
    retry = Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry)
    s.mount('http://', adapter)
    s.mount('https://', adapter)
    return s
