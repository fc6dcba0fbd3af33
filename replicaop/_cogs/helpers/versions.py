"""
Detecting the operator's own version, as installed.

The version is not hard-coded in the source code: it is taken from the
package's distribution metadata once at startup. It is only used for
the self-identification in the API requests (``User-Agent``) and in CLI.
"""
import importlib.metadata

version: str | None = None

try:
    name, *_ = __name__.split('.')  # usually "replicaop", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # running from a source tree without installation.
