import asyncio
import socket
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Coroutine, Literal, NamedTuple, TextIO

from .config import HOST, PORT, ServerConfig
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .services.assets import AssetsService
from .services.files import FileService
from .services.health import HealthService
from .utils.limits import LimitType, unlimit
from .utils.logging import error, event, exception, info, warning


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True
	output: TextIO | None = field(default=None)

	def stop(self) -> None:
		info("Server stopping…", output=self.output)
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e, output=self.output)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	timeout: float = 10.0
	# This is the polling timeout for accepting new requests. Every second is
	# good
	polling: float = 1.0
	readsize: int = 4_096
	keepalive: float = 3_600
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True
	output: TextIO | None = None


OPTIONS: ServerOptions = ServerOptions()

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 39\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal server error: Request not sent"
)


def keepsAlive(request: HTTPRequest) -> bool:
	"""Tells if the connection stays open after answering `request`."""
	if request.protocol == "HTTP/1.0":
		return False
	return (request.header("Connection") or "").strip().lower() != "close"


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk is None or chunk is False:
			pass
		else:
			await self.loop.sock_sendall(self.client, chunk)
			self.written += len(chunk)
		return False

	async def _writeFile(
		self, path: Path, offset: int, size: int, chunk: int = 64_000
	) -> bool:
		if size <= 0:
			return True
		# The file is opened anew, the handler that created the response
		# has already closed its own handle.
		with open(path, "rb") as f:
			self.written += await self.loop.sock_sendfile(
				self.client, f, offset, size
			)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Asynchronous worker, processing a socket in the context
		of an application."""
		size: int = options.readsize
		output: TextIO | None = options.output
		buffer = bytearray(size)
		keep_alive_timeout: float = options.keepalive
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		read_count: int = 0
		res_count: int = 0
		req_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)

			# NOTE: A client may keep a single connection open, all the
			# requests then come through this loop until there's a
			# `Connection: close` or the keepalive timeout has expired.
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=keep_alive_timeout,
					)
					read_count += n
				except TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					# We need to break here as otherwise we'll be in a hot loop.
					break
				# NOTE: With HTTP Pipelining, we may receive more than one
				# request in the same payload, so we need to be prepared
				# to answer more than one request.
				chunk = buffer[:n] if n != size else buffer
				stream = parser.feed(bytes(chunk))
				for atom in stream:
					if atom is HTTPProcessingStatus.Complete:
						status = atom
					elif isinstance(atom, HTTPRequest):
						req = atom
						req_count += 1
						if not keepsAlive(req):
							keep_alive = False
						res = await cls.SendResponse(
							req,
							app,
							writer,
							logRequests=options.logRequests,
							output=output,
						)
						if res:
							res_count += 1
							if res.shouldClose:
								keep_alive = False
					elif atom is HTTPProcessingStatus.BadFormat:
						# There's no way to tell where the next request starts
						await writer.write(SERVER_ERROR)
						keep_alive = False
						break

			if res_count != req_count:
				warning(
					"Incomplete responses",
					output=output,
					Requests=req_count,
					Responses=res_count,
				)
			if status is HTTPProcessingStatus.NoData and read_count and not res_count:
				warning(
					"Client did not feed a complete request",
					output=output,
					ReadCount=read_count,
					Status=status.name,
				)

		except Exception as e:
			exception(e, output=output)
		finally:
			# The loop above takes care of keep alive, so we always close
			# the connection on exit.
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
		*,
		logRequests: bool = True,
		output: TextIO | None = None,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends a response
		using the given writer, logging the request once it's sent."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		sent: bool = False
		started: float = time.monotonic()
		written: int = writer.written
		try:
			r: HTTPResponse | Coroutine[Any, Any, HTTPResponse] = app.process(req)
			res = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Request {req.method} {req.path} failed", output=output)
		if res is not None:
			try:
				await writer.write(res.head())
				sent = True
				# Responses to HEAD have the headers of the GET response,
				# without its body.
				if not req.isHead:
					await writer.write(res.body)
			except BrokenPipeError:
				# Client did an early close
				writer.shouldClose = True
			except Exception as e:
				exception(e, output=output)
				writer.shouldClose = True
		if not sent:
			try:
				warning(
					"Server did not send a response",
					output=output,
					Method=req.method,
					Path=req.path,
				)
				await writer.write(SERVER_ERROR)
			except Exception as e:
				exception(e, output=output)
			writer.shouldClose = True
		if logRequests:
			event(
				req.method,
				req.path,
				output=output,
				Protocol=req.protocol,
				Status=res.status if res and sent else 500,
				Message=res.message if res and sent else "Internal Server Error",
				Duration=(time.monotonic() - started) * 1_000,
				Bytes=writer.written - written,
			)
		return res if sent else None

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = ServerOptions(),
	) -> None:
		"""Main server coroutine."""
		output: TextIO | None = options.output
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
				output=output,
			)
			server.close()
			raise e

		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		# This is what we need to use it with asyncio
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()

		state = ServerState(output=output)
		# Signal handlers can only be set from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		await app.start()
		info(
			"Server listening",
			icon="🚀",
			output=output,
			Host=options.host,
			Port=options.port,
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					res = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
					if res is None:
						continue
					else:
						client = res[0]
					task = loop.create_task(
						cls.OnRequest(app, client, loop=loop, options=options)
					)
					tasks.add(task)
					task.add_done_callback(tasks.discard)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e, output=output)

		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()


def application(config: ServerConfig) -> Application:
	"""Creates the application serving the configured root, along with the
	listing assets and the health endpoint."""
	return mount(
		HealthService(),
		AssetsService(config),
		FileService(config),
	)


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	timeout: float = OPTIONS.timeout,
	polling: float = OPTIONS.polling,
	logRequests: bool = OPTIONS.logRequests,
	keepalive: float = OPTIONS.keepalive,
	output: TextIO | None = None,
) -> None:
	"""High level function to run the server."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		timeout=timeout,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
		output=output,
	)
	app = mount(*components)
	try:
		asyncio.run(AIOSocketServer.Serve(app, options))
	except KeyboardInterrupt:
		event("ManualShutdown", output=output)
	event("EOK", output=output)


def serve(config: ServerConfig) -> None:
	"""Runs the server for the given configuration, until it's stopped."""
	info(
		"Serving directory",
		icon="📂",
		output=config.logOutput,
		Root=str(config.root),
		Prefix=config.prefix,
	)
	run(
		application(config),
		host=config.host,
		port=config.port,
		logRequests=config.logRequests,
		output=config.logOutput,
	)


# EOF
