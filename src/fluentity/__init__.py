"""fluentity -- a fluent, model-based client for REST APIs.

Remote resources are described as :class:`Model` subclasses. Chained
expressions on them derive nested REST paths, HTTP verbs and query strings,
and an adapter turns the resulting request into a response::

    from fluentity import Fluentity, HasMany, Model, RestAdapter

    class Media(Model):
        resource = "medias"

    class User(Model):
        resource = "users"
        medias = HasMany(lambda: Media)

    async with RestAdapter(base_url="https://api.example.com") as adapter:
        Fluentity.initialize(adapter)

        medias = await User.id(1).medias.where(type="image").all()
        # GET https://api.example.com/users/1/medias?type=image

Leaving the ``async with`` block closes the adapter's HTTP client.

Modules:
    model: The :class:`Model` base class and its CRUD operations.
    metadata: Relationship and cast declarations.
    relations: Relation builders (fluent queries and terminal operations).
    query_builder: Request nodes and their resolution into URLs.
    adapters: The I/O boundary (default, HTTP pipeline, REST transport).
    cache: TTL response cache.
    config: Option loading from environment and project files.
    exceptions: Exception hierarchy.
"""

from fluentity.adapters import Adapter, DefaultAdapter, HttpAdapter, RestAdapter
from fluentity.exceptions import (
    AuthError,
    ConfigurationError,
    ConnectionError_,
    FluentityError,
    MaterializationError,
    NotFoundError,
    RequestError,
    ServerError,
)
from fluentity.fluentity import Fluentity
from fluentity.metadata import BelongsTo, BelongsToMany, Cast, HasMany, HasOne
from fluentity.model import Model
from fluentity.models import (
    AdapterOptions,
    CacheOptions,
    HTTPMethod,
    HttpRequest,
    HttpResponse,
    RequestOptions,
)
from fluentity.query_builder import QueryBuilder, resolve
from fluentity.relations import HasManyRelationBuilder, HasOneRelationBuilder, RelationBuilder

__version__ = "0.1.0"

__all__ = [
    "Adapter",
    "AdapterOptions",
    "AuthError",
    "BelongsTo",
    "BelongsToMany",
    "CacheOptions",
    "Cast",
    "ConfigurationError",
    "ConnectionError_",
    "DefaultAdapter",
    "Fluentity",
    "FluentityError",
    "HTTPMethod",
    "HasMany",
    "HasManyRelationBuilder",
    "HasOne",
    "HasOneRelationBuilder",
    "HttpAdapter",
    "HttpRequest",
    "HttpResponse",
    "MaterializationError",
    "Model",
    "NotFoundError",
    "QueryBuilder",
    "RelationBuilder",
    "RequestError",
    "RequestOptions",
    "ServerError",
    "resolve",
]
