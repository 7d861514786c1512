import logging
import os
import sys
from collections.abc import Mapping
from collections.abc import Sequence

from httpclient import exceptions
from httpclient import version
from httpclient.client import HttpClient
from httpclient.config import ClientConfig
from httpclient.http.request import RequestBuilder
from httpclient.http.response import InboundResponse
from httpclient.net import noproxy
from httpclient.net import tls
from httpclient.tools import cmdline

logger = logging.getLogger(__name__)


def make_config(args, environ: Mapping[str, str]) -> ClientConfig:
    overrides = {}
    if args.cacert is not None:
        overrides["ca_path"] = args.cacert
    if args.proxy is not None:
        overrides["proxy_url"] = args.proxy
    if args.noproxy is not None:
        overrides["no_proxy"] = noproxy.parse_list(args.noproxy)
    if args.connect_timeout is not None:
        overrides["connect_timeout"] = args.connect_timeout
    if args.read_timeout is not None:
        overrides["read_timeout"] = args.read_timeout
    return ClientConfig.from_env(environ, **overrides)


def make_request(client: HttpClient, args) -> RequestBuilder:
    """
    Raises:
        ValueError, if an argument cannot be used.
    """
    builder = client.request(args.url).method(args.method)
    for header in args.headers:
        name, sep, value = header.partition(":")
        if not sep:
            raise ValueError(f"Invalid header: {header!r}, expected NAME: VALUE")
        builder.header(name.strip(), value.strip())
    for param in args.params:
        name, sep, value = param.partition("=")
        if not sep:
            raise ValueError(f"Invalid parameter: {param!r}, expected NAME=VALUE")
        builder.param(name, value)
    if args.data is not None:
        if args.data.startswith("@"):
            with open(args.data[1:], "rb") as f:
                builder.entity(f.read())
        else:
            builder.entity(args.data)
    if args.content_type:
        builder.content_type(args.content_type)
    if args.charset:
        builder.charset(args.charset)
    for media_type in args.accept:
        builder.accept(media_type)
    if args.insecure:
        builder.tls_context(tls.create_client_context(verify=tls.Verify.VERIFY_NONE))
    if args.fire_and_forget:
        builder.fire_and_forget()
    return builder


def format_head(response: InboundResponse) -> str:
    lines = [f"{response.http_version} {response.status_code} {response.reason}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers.fields)
    return "\n".join(lines) + "\n\n"


def run(args: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    parser = cmdline.httpclient()
    opts = parser.parse_args(args)

    if opts.version:
        print(version.HTTPCLIENT)
        return 0
    if not opts.url:
        parser.print_usage(sys.stderr)
        return 2

    if opts.verbose:
        level = logging.DEBUG
    elif opts.quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s")

    try:
        client = HttpClient(make_config(opts, os.environ if environ is None else environ))
        response = client.execute(make_request(client, opts))
    except exceptions.HttpClientException as e:
        # checked first, TcpTimeout is an OSError as well
        print(f"httpclient: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as e:
        print(f"httpclient: {e}", file=sys.stderr)
        return 2

    if response is None:
        return 0
    if opts.include:
        sys.stdout.write(format_head(response))
    sys.stdout.flush()
    sys.stdout.buffer.write(response.raw_body)
    sys.stdout.buffer.flush()
    return 0


def main() -> None:  # pragma: no cover
    sys.exit(run())
