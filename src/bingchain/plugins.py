# plugins.py
# Plugin installer and the apicall tool.
#
# install(domain) reads https://{domain}/.well-known/ai-plugin.json, fetches
# the OpenAPI description it points at, and returns prompt text teaching
# the model the new API. The API's servers[0].url becomes the session's
# api_base, which apicall uses to resolve relative paths.
#
# Known limitation: the session holds a single installed API. Every
# successful install replaces the previous base URL.

import json
from typing import TYPE_CHECKING

import httpx
import yaml

from bingchain import display
from bingchain.models import PluginRegistration
from bingchain.prompts import PLUGIN_PROMPT, load_template
from bingchain.registry import Tool

if TYPE_CHECKING:
    from bingchain.session import Session

MANIFEST_PATH = "/.well-known/ai-plugin.json"


class PluginInstallError(Exception):
    """Raised inside install() for any step that fails; install() returns ''."""


def normalise_domain(domain: str) -> str:
    domain = domain.strip().strip("\"'")
    domain = domain.replace("the ", "").replace(" plugin", "")
    for scheme in ("http://", "https://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
    return domain.strip().rstrip("/")


class PluginInstaller:
    def __init__(self, session: "Session", template: str = PLUGIN_PROMPT) -> None:
        self.session = session
        self.template = template

    def _fetch(self, url: str) -> httpx.Response:
        try:
            response = self.session.http.get(url)
        except httpx.HTTPError as exc:
            raise PluginInstallError(f"{url} - {exc}") from exc
        if not response.is_success:
            raise PluginInstallError(f"{url} - {response.status_code} {response.reason_phrase}")
        return response

    def fetch_manifest(self, domain: str) -> dict:
        response = self._fetch(f"https://{domain}{MANIFEST_PATH}")
        try:
            manifest = response.json()
        except ValueError as exc:
            raise PluginInstallError(f"Plugin manifest is not valid JSON: {exc}") from exc
        if not isinstance(manifest, dict):
            raise PluginInstallError("Plugin manifest is not a JSON object.")
        display.debug(yaml.safe_dump(manifest, sort_keys=False))
        return manifest

    def fetch_api_description(self, url: str) -> dict:
        response = self._fetch(url)
        try:
            description = yaml.safe_load(response.text)
        except yaml.YAMLError as exc:
            raise PluginInstallError(f"API description could not be parsed: {exc}") from exc
        if not isinstance(description, dict):
            raise PluginInstallError("API description is not a mapping.")
        return description

    def install(self, domain: str) -> str:
        """Install the plugin served by `domain`. Returns '' on any failure."""
        domain = normalise_domain(domain)
        try:
            manifest = self.fetch_manifest(domain)
            api = manifest.get("api")
            if not isinstance(api, dict) or api.get("type") != "openapi":
                raise PluginInstallError(f"The {domain} plugin does not declare an OpenAPI API.")
            if not isinstance(api.get("url"), str) or not api["url"].strip():
                raise PluginInstallError(f"The {domain} plugin has no API description URL.")
            try:
                api_url = str(httpx.URL(f"https://{domain}/").join(api["url"]))
            except httpx.InvalidURL as exc:
                raise PluginInstallError(f"Bad API description URL: {exc}") from exc
            description = self.fetch_api_description(api_url)
        except PluginInstallError as exc:
            display.install_failed(f"Failed to install the {domain} plugin: {exc}")
            return ""

        summary = self.template + "\n\n" + yaml.safe_dump(description, sort_keys=False, allow_unicode=True)

        servers = description.get("servers")
        if description.get("openapi") and isinstance(servers, list) and servers:
            first = servers[0]
            base = first.get("url") if isinstance(first, dict) else None
            if isinstance(base, str) and base:
                self.session.install_plugin(
                    PluginRegistration(domain=domain, api_base_url=base, summary_text=summary)
                )

        display.install_ok(domain)
        return summary


class InstallTool(Tool):
    name = "install"
    description = (
        "A tool used to install API plugins. Input should be a bare domain name without a "
        "scheme/protocol or path."
    )

    def __init__(self, session: "Session") -> None:
        self.session = session
        self.installer = PluginInstaller(
            session, load_template(session.settings.plugin_file, PLUGIN_PROMPT)
        )

    def execute(self, tool_input: str) -> str:
        return self.installer.install(tool_input)


def parse_endpoint(endpoint: str) -> tuple[str, str, dict]:
    """
    Split 'METHOD:path#{headers}' into its parts.

    Raises ValueError when the method is missing.
    """
    method, sep, remaining = endpoint.partition(":")
    if not sep or not method.strip():
        raise ValueError("Input should be METHOD:url, for example GET:/pets")
    path, _, raw_headers = remaining.strip().partition("#")
    headers: dict = {}
    if raw_headers.strip():
        try:
            parsed = json.loads(raw_headers)
        except json.JSONDecodeError:
            display.warning("Could not parse headers map JSON")
        else:
            if isinstance(parsed, dict):
                headers = {str(k): str(v) for k, v in parsed.items()}
    return method.strip().upper(), path.strip(), headers


class ApiCallTool(Tool):
    name = "apicall"
    description = (
        "A tool used to call a known API endpoint. Input should be in the form of an HTTP method in "
        "capital letters, followed by a colon (:) and the URL to call, made up of the relevant "
        "servers object entry and the selected operation's pathitem object key, having already "
        "replaced the templated path parameters. Headers should be provided after a # sign in the "
        "form of a JSON object of key/value pairs."
    )

    def __init__(self, session: "Session") -> None:
        self.session = session

    def execute(self, tool_input: str) -> str:
        try:
            method, path, headers = parse_endpoint(tool_input)
        except ValueError as exc:
            return str(exc)
        url = path if path.startswith("http") else self.session.api_base + path
        if not any(key.lower() == "accept" for key in headers):
            headers["accept"] = "application/json"

        display.api_request(method, url)
        try:
            response = self.session.http.request(method, url, headers=headers)
        except httpx.HTTPError as exc:
            display.tool_failed(self.name, f"{method} {url} - {exc}")
            return f"{method} {url} failed: {exc}"
        if not response.is_success:
            return f"{response.status_code} - {response.reason_phrase}"

        content_type = response.headers.get("content-type")
        display.api_response(response.status_code, content_type)
        contents = response.text
        if contents.lstrip().startswith("<") or (content_type and "xml" in content_type):
            return self.session.truncate(contents)
        try:
            body = json.loads(contents)
        except json.JSONDecodeError:
            return self.session.truncate(contents)
        result = yaml.safe_dump(body, sort_keys=False, allow_unicode=True)
        display.debug(result)
        return self.session.truncate(result)
