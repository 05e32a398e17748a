from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Any, Dict, List, Literal, Optional, Union


class WireModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)


# Connection descriptors

class SqlConnection(WireModel):
    host: str
    port: int
    database: str
    username: str
    password: str = ""
    ssl: bool = False


class PostgresConnection(SqlConnection):
    provider: Literal["postgresql"] = "postgresql"
    port: int = 5432


class MySQLConnection(SqlConnection):
    provider: Literal["mysql"] = "mysql"
    port: int = 3306


class SupabaseConnection(WireModel):
    provider: Literal["supabase"] = "supabase"
    project_url: str = Field(..., alias="projectUrl")
    anon_key: str = Field("", alias="anonKey")
    service_role_key: str = Field("", alias="serviceRoleKey")

    @property
    def api_key(self) -> str:
        return self.service_role_key or self.anon_key


class FirebaseConnection(WireModel):
    provider: Literal["firebase"] = "firebase"
    project_id: str = Field("", alias="projectId")
    api_key: str = Field("", alias="apiKey")
    database_url: str = Field(..., alias="databaseUrl")


ConnectionDescriptor = Annotated[
    Union[PostgresConnection, MySQLConnection, SupabaseConnection, FirebaseConnection],
    Field(discriminator="provider"),
]
CONNECTION_ADAPTER = TypeAdapter(ConnectionDescriptor)
SUPPORTED_PROVIDERS = ("postgresql", "mysql", "supabase", "firebase")


# Gateway requests / results

class DbQueryRequest(WireModel):
    connection: Optional[Dict[str, Any]] = None
    query: Optional[str] = None
    page: int = 1
    page_size: Optional[int] = Field(None, alias="pageSize")


class QueryResult(WireModel):
    columns: List[str]
    rows: List[Dict[str, Any]]
    total_count: int = Field(..., alias="totalCount")
    page: int
    page_size: int = Field(..., alias="pageSize")


class DbUpdateRequest(WireModel):
    connection: Optional[Dict[str, Any]] = None
    table_name: Optional[str] = Field(None, alias="tableName")
    primary_key: Optional[str] = Field(None, alias="primaryKey")
    primary_key_value: Any = Field(None, alias="primaryKeyValue")
    column: Optional[str] = None
    new_value: Any = Field(None, alias="newValue")


class UpdateResult(WireModel):
    success: bool = True


class DbDeleteRequest(WireModel):
    connection: Optional[Dict[str, Any]] = None
    table_name: Optional[str] = Field(None, alias="tableName")
    primary_key: Optional[str] = Field(None, alias="primaryKey")
    primary_key_values: Optional[List[Any]] = Field(None, alias="primaryKeyValues")


class DeleteResult(WireModel):
    success: bool = True
    deleted_count: int = Field(..., alias="deletedCount")
    failed_ids: List[Any] = Field(default_factory=list, alias="failedIds")


# Proxy

class ProxyRequest(WireModel):
    url: Optional[str] = None
    method: str = "GET"
    headers: Dict[str, str] = {}
    body: Any = None


class ProxyResponse(WireModel):
    status: int
    status_text: str = Field(..., alias="statusText")
    body: Any = None


# OpenAPI navigation / scaffolding

class SpecParseRequest(WireModel):
    content: Optional[str] = None


class OperationSummary(WireModel):
    path: str
    method: str
    summary: str = ""
    operation_id: Optional[str] = Field(None, alias="operationId")
    deprecated: bool = False


class SpecTag(WireModel):
    name: str
    description: str = ""
    operations: List[OperationSummary] = []


class SpecNavigationResponse(WireModel):
    title: str
    description: str = ""
    version: str = ""
    base_url: str = Field(..., alias="baseUrl")
    servers: List[Dict[str, Any]] = []
    tags: List[SpecTag]
    errors: Dict[str, Any] = {}


class BodyRow(WireModel):
    key: str = ""
    value: str = ""
    type: Literal["string", "number", "boolean", "json"] = "string"
    enabled: bool = True


class CodeSamples(WireModel):
    curl: str
    fetch: str
    python: str


class ScaffoldRequest(WireModel):
    content: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None
    path_params: Dict[str, str] = Field(default_factory=dict, alias="pathParams")
    bearer_token: Optional[str] = Field(None, alias="bearerToken")
    body_rows: Optional[List[BodyRow]] = Field(None, alias="bodyRows")


class ScaffoldResponse(WireModel):
    url: str
    method: str
    headers: Dict[str, str]
    parameters: List[Dict[str, Any]]
    example_body: Any = Field(None, alias="exampleBody")
    responses: Dict[str, Any] = {}
    code_samples: CodeSamples = Field(..., alias="codeSamples")


class CodeSampleRequest(WireModel):
    url: Optional[str] = None
    method: str = "GET"
    headers: Dict[str, str] = {}
    body: Any = None


# Database schema documents

class ColumnDef(BaseModel):
    type: str
    primary_key: bool = False
    nullable: Optional[bool] = None
    unique: bool = False
    sensitive: bool = False
    default: Any = None
    description: Optional[str] = None
    enum_name: Optional[str] = None


class RelationDef(BaseModel):
    type: Literal["one-to-one", "one-to-many", "many-to-one", "many-to-many"]
    table: str
    foreign_key: str


class TableDef(BaseModel):
    description: Optional[str] = None
    columns: Dict[str, ColumnDef]
    relations: Dict[str, RelationDef] = {}


class DatabaseMeta(WireModel):
    name: str
    engine: str
    schema_name: Optional[str] = Field(None, alias="schema")


class DatabaseSchema(BaseModel):
    database: DatabaseMeta
    tables: Dict[str, TableDef]


class RelationEdge(WireModel):
    from_table: str = Field(..., alias="from")
    to_table: str = Field(..., alias="to")
    name: str
    type: str
    foreign_key: str = Field(..., alias="foreignKey")
    resolved: bool


class SchemaParseRequest(WireModel):
    content: Optional[str] = None
    search: Optional[str] = None


class SchemaResponse(WireModel):
    database: DatabaseMeta
    tables: Dict[str, TableDef]
    relations: List[RelationEdge]
    primary_keys: Dict[str, Optional[str]] = Field(..., alias="primaryKeys")
    sensitive_columns: Dict[str, List[str]] = Field(..., alias="sensitiveColumns")
    matches: Optional[List[str]] = None


# Workspace persistence

class WorkspaceSnapshot(WireModel):
    spec_content: Optional[str] = Field(None, alias="specContent")
    schema_content: Optional[str] = Field(None, alias="schemaContent")
    tabs: List[Dict[str, Any]] = []
    active_tab: Optional[str] = Field(None, alias="activeTab")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
