# SPDX-License-Identifier: Apache-2.0

"""
SEWA Relief Ledger API - Flask Application Entry Point

This module initializes the Flask application with OpenAPI 3.0 support,
reads configuration from the environment, wires the storage, attestation and
session collaborators, and registers the route blueprints.
"""

import os
from typing import Optional, Dict, Any
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from models.enums import StorageBackend
from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from middleware.auth import AuthMiddleware
from services.hal import HalFormatter
from services.mongodb import MongoDBService
from services.redis import RedisService
from services.auth import AuthService, DEFAULT_SESSION_TTL_SECONDS
from services.attestation import create_attestation_provider
from services.registry import InMemoryFamilyRegistry, MongoFamilyRegistry
from services.ledger import InMemoryDistributionLedger, MongoDistributionLedger
from services.health import HealthCheckService
from domain.distributions import DEFAULT_MAX_QUANTITY

# OpenAPI info
info = Info(
    title="SEWA Relief Ledger API",
    version="1.0.0",
    description="Privacy-preserving aid distribution ledger with HATEOAS Level-3 support"
)

health_tag = Tag(name="Health", description="System health and status")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config() -> Dict[str, Any]:
    """Read application configuration from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': _flag('DOCS_ENABLED', 'true'),
        'OTEL_ENABLED': _flag('OTEL_ENABLED', 'true'),
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),

        # Volunteer sessions
        'JWT_SECRET': os.getenv('JWT_SECRET'),
        'SESSION_TTL_SECONDS': int(os.getenv('SESSION_TTL_SECONDS', DEFAULT_SESSION_TTL_SECONDS)),
        'REDIS_URL': os.getenv('REDIS_URL'),

        # Storage
        'STORAGE_BACKEND': os.getenv('STORAGE_BACKEND', StorageBackend.MEMORY.value).lower(),
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/sewa_relief_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE'),
        'STORAGE_TIMEOUT_MS': int(os.getenv('STORAGE_TIMEOUT_MS', 5000)),

        # Attestation
        'ATTESTATION_MODE': os.getenv('ATTESTATION_MODE', 'mock').lower(),
        'ATTESTATION_VERIFIER_URL': os.getenv('ATTESTATION_VERIFIER_URL'),
        'ATTESTATION_APP_ID': os.getenv('ATTESTATION_APP_ID'),
        'ATTESTATION_TIMEOUT_S': float(os.getenv('ATTESTATION_TIMEOUT_S', 10)),

        # Business rules
        'MAX_DISTRIBUTION_QUANTITY': int(os.getenv('MAX_DISTRIBUTION_QUANTITY', DEFAULT_MAX_QUANTITY)),
    }


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config_overrides: Values applied on top of the environment configuration

    Returns:
        Configured OpenAPI (Flask) application
    """
    config = load_config()
    config.update(config_overrides or {})

    # Create Flask app with OpenAPI
    app = OpenAPI(
        __name__,
        info=info,
        doc_ui=config["DOCS_ENABLED"]
    )
    app.config.update(config)

    add_observability_middleware(app)

    # Storage collaborators
    mongodb_service = None
    backend = StorageBackend(app.config['STORAGE_BACKEND'])
    if backend == StorageBackend.MONGODB:
        mongodb_service = MongoDBService(
            app.config['MONGODB_URI'],
            app.config['MONGODB_DATABASE'],
            app.config['STORAGE_TIMEOUT_MS']
        )
        mongodb_service.create_indexes()
        family_registry = MongoFamilyRegistry(mongodb_service)
        distribution_ledger = MongoDistributionLedger(mongodb_service)
    else:
        family_registry = InMemoryFamilyRegistry()
        distribution_ledger = InMemoryDistributionLedger()

    # Sessions and attestation
    redis_service = RedisService(app.config['REDIS_URL']) if app.config['REDIS_URL'] else None
    auth_service = AuthService(
        app.config['JWT_SECRET'],
        app.config['SESSION_TTL_SECONDS'],
        redis_service
    )
    attestation_provider = create_attestation_provider(
        app.config['ATTESTATION_MODE'],
        app.config['ATTESTATION_VERIFIER_URL'],
        app.config['ATTESTATION_APP_ID'],
        app.config['ATTESTATION_TIMEOUT_S']
    )

    health_service = HealthCheckService(
        backend.value,
        mongodb_service,
        redis_service,
        app.config['ATTESTATION_MODE']
    )

    # Initialize middleware
    hal_formatter = HalFormatter(app.config['BASE_URL'])
    auth_middleware = AuthMiddleware(auth_service)
    ErrorHandlerMiddleware(app, app.config['BASE_URL'])
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.auth_service = auth_service
    app.attestation_provider = attestation_provider
    app.family_registry = family_registry
    app.distribution_ledger = distribution_ledger
    app.health_service = health_service
    app.hal_formatter = hal_formatter
    app.auth_middleware = auth_middleware

    # Register routes
    from routes.volunteers import volunteers_bp
    from routes.families import families_bp
    from routes.distributions import distributions_bp
    from routes.stats import stats_bp

    app.register_api(volunteers_bp)
    app.register_api(families_bp)
    app.register_api(distributions_bp)
    app.register_api(stats_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Health check endpoint with dependency monitoring"""
        health_data = health_service.get_comprehensive_health()

        # Degraded is still operational
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        health_data["_links"] = {
            "self": {"href": f"{app.config['BASE_URL']}/api/healthz"}
        }
        return jsonify(health_data), status_code

    return app


# Initialize observability first
setup_observability()


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
