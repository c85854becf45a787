#!/usr/bin/env python3
"""
Ride Query Server - Main Entry Point
====================================

FastAPI server answering natural-language questions about trips, stations
and weather. Each question is compiled into parameterized SQL, executed
against PostgreSQL and returned as a small JSON answer.

Endpoints:
    GET  /health   liveness plus pool, schema and metrics summary
    POST /query    {"question": "..."} -> {"query", "result", "error"}

uvicorn handles SIGINT/SIGTERM; the lifespan shutdown then closes the
connection pool. A schema that cannot be loaded aborts startup.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from shared.config.environment import get_environment_info
from shared.config.logging_config import reset_request_id, set_request_id, setup_logging
from shared.config.settings import Settings, get_settings
from shared.schemas.query_models import HealthStatus, QueryResponse, SchemaSnapshot
from shared.utils.metrics import get_metrics_collector

from .connection_manager import PostgresConnectionManager
from .errors import EmptyInputError, SchemaUnavailableError
from .query_executor import PostgresQueryExecutor
from .query_service import QueryService
from .schema_inspector import PostgresSchemaInspector, StaticSchemaProvider


INVALID_QUESTION_MESSAGE = "Question is required and must be a string"


class QueryServer:
    """FastAPI application wrapping a QueryService."""

    def __init__(self, settings: Optional[Settings] = None, service: Optional[QueryService] = None):
        self.settings = settings or get_settings()
        self.service = service
        self.connection_manager: Optional[PostgresConnectionManager] = None
        self.logger = logging.getLogger("QueryServer")
        self.metrics = get_metrics_collector()

        self.app = FastAPI(
            title="Ride Query Server",
            description="Natural-language questions over trip, station and weather data",
            version="1.0.0",
            lifespan=self.lifespan
        )

        self._setup_middleware()
        self._setup_routes()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """FastAPI lifespan handler for startup and shutdown."""
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    def _setup_middleware(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def tag_request(request: Request, call_next):
            request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
            token = set_request_id(request_id)
            try:
                response = await call_next(request)
            finally:
                reset_request_id(token)
            response.headers["X-Request-ID"] = request_id
            return response

    def _setup_routes(self):

        @self.app.get("/health")
        async def health_check():
            return jsonable_encoder(await self.get_health_status())

        @self.app.post("/query")
        async def query(request: Request):
            question = await self._read_question(request)
            if not isinstance(question, str):
                return JSONResponse(status_code=400, content=QueryResponse.failure(INVALID_QUESTION_MESSAGE).model_dump())
            if not question.strip():
                return JSONResponse(status_code=400, content=QueryResponse.failure(EmptyInputError.default_message).model_dump())

            self.logger.info(f"Question received: {question!r}")
            response = await self.service.answer(question)
            status_code = 500 if response.error else 200
            return JSONResponse(status_code=status_code, content=jsonable_encoder(response))

    async def _read_question(self, request: Request) -> Any:
        try:
            body = await request.json()
        except ValueError:
            return None
        return body.get("question") if isinstance(body, dict) else None

    async def startup(self):
        """Connect, load the schema and build the service."""
        self.logger.info("Starting Ride Query Server...")
        if self.service is None:
            self.service = await self._build_service()

        try:
            await self.service.initialize()
        except SchemaUnavailableError as e:
            self.logger.error(f"Cannot start without a schema: {e.message}")
            await self.shutdown()
            raise

        tables = ", ".join(self.service.schema.table_names())
        self.logger.info(f"Ride Query Server ready; tables: {tables}")
        self.metrics.counter("query_server.startup.total").increment()

    async def _build_service(self) -> QueryService:
        missing = self.settings.validate_required_credentials()
        if missing:
            raise SchemaUnavailableError(f"Missing database settings: {', '.join(missing)}")

        self.connection_manager = PostgresConnectionManager(self.settings.database)
        try:
            await self.connection_manager.initialize()
        except SQLAlchemyError as e:
            raise SchemaUnavailableError(f"Cannot connect to database: {getattr(e, 'orig', None) or e}") from e

        inspector = PostgresSchemaInspector(self.connection_manager, self.settings.database.schema_name)
        executor = PostgresQueryExecutor(self.connection_manager)
        return QueryService(inspector, executor, config=self.settings.compiler)

    async def shutdown(self):
        """Close the connection pool."""
        self.logger.info("Shutting down Ride Query Server...")
        if self.connection_manager is not None:
            await self.connection_manager.cleanup()
            self.connection_manager = None
        self.logger.info("Ride Query Server shutdown complete")

    async def get_health_status(self) -> HealthStatus:
        """Schema and metrics summary; pool health when this server owns one."""
        status = self.service.get_status() if self.service is not None else {}
        database_healthy = None
        if self.connection_manager is not None:
            database_healthy = await self.connection_manager.is_healthy()
        return HealthStatus(
            status="DEGRADED" if database_healthy is False else "OK",
            database_healthy=database_healthy,
            schema_loaded=bool(status.get('schema_loaded')),
            tables=len(status.get('tables', [])),
            environment=get_environment_info(),
            metrics=self.metrics.get_summary(),
        )


def create_app(settings: Optional[Settings] = None, service: Optional[QueryService] = None) -> FastAPI:
    """Create FastAPI application."""
    return QueryServer(settings=settings, service=service).app


def load_schema_file(path: str) -> SchemaSnapshot:
    """Schema from JSON shaped {"table": [["column", "type"], ...]}."""
    with open(Path(path), encoding='utf-8') as handle:
        return SchemaSnapshot.from_dict(json.load(handle))


async def _load_schema_from_database(settings: Settings) -> SchemaSnapshot:
    manager = PostgresConnectionManager(settings.database)
    try:
        return await PostgresSchemaInspector(manager, settings.database.schema_name).get_schema()
    finally:
        await manager.cleanup()


def compile_question(question: str, settings: Settings, schema_file: Optional[str] = None) -> Dict[str, Any]:
    """Compile one question without executing it."""
    if schema_file:
        snapshot = load_schema_file(schema_file)
    elif settings.database is not None:
        snapshot = asyncio.run(_load_schema_from_database(settings))
    else:
        raise SchemaUnavailableError("Pass --schema-file or configure PGHOST/PGDATABASE/PGUSER/PGPASSWORD")

    service = QueryService(StaticSchemaProvider(snapshot), executor=None, config=settings.compiler)
    asyncio.run(service.initialize())
    compiled = service.compile(question)
    return {
        'intent': compiled.intent.value,
        'sql': compiled.text,
        'parameters': list(compiled.parameters),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ride Query Server")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Host to bind to (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port to bind to (default: PORT or 3000)")

    compile_cmd = subparsers.add_parser("compile", help="Print the SQL compiled for a question")
    compile_cmd.add_argument("question", help="Question to compile")
    compile_cmd.add_argument("--schema-file", default=None, help="JSON schema file instead of the database")
    compile_cmd.add_argument("--reference-year", type=int, default=None, help="Year for 'first week of <month>'")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "compile":
        if args.reference_year is not None:
            settings = settings.model_copy(update={
                'compiler': settings.compiler.model_copy(update={'reference_year': args.reference_year})
            })
        try:
            result = compile_question(args.question, settings, args.schema_file)
        except SchemaUnavailableError as e:
            print(e.message, file=sys.stderr)
            return 1
        print(json.dumps(result, indent=2))
        return 0

    setup_logging(settings.logging)
    host = args.host or settings.server.host
    port = args.port or settings.server.port
    uvicorn.run(create_app(settings), host=host, port=port, log_level="info", access_log=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
