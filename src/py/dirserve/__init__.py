from .http.model import (
	HTTPRequest,
	HTTPResponse,
	HTTPRequestError,
)  # NOQA: F401
from .decorators import on  # NOQA: F401
from .config import ServerConfig  # NOQA: F401
from .server import run, serve, application  # NOQA: F401
from .model import Service, Application, mount  # NOQA: F401
from .services.files import FileService  # NOQA: F401

__version__: str = "0.1.0"

# EOF
