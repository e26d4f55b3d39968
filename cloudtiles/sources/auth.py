"""
Authentication strategies for HTTP sources. Each one adds headers to an
outgoing request.

Example (as used in settings or JSON configuration):

```json
{
  "auth_type": "api_key",
  "header_name": "X-API-Key",
  "api_key": "secret",
  "value_prefix": ""
}
```
"""

import base64
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, SecretStr, field_validator


class BasicAuthentication(BaseModel):
    auth_type: Literal["basic"] = "basic"
    username: str
    password: SecretStr

    def authenticate(self, headers: dict[str, str]) -> dict[str, str]:
        credentials = f"{self.username}:{self.password.get_secret_value()}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return {**headers, "Authorization": f"Basic {encoded}"}


class BearerTokenAuthentication(BaseModel):
    auth_type: Literal["bearer"] = "bearer"
    token: SecretStr

    def authenticate(self, headers: dict[str, str]) -> dict[str, str]:
        return {**headers, "Authorization": f"Bearer {self.token.get_secret_value()}"}


class ApiKeyAuthentication(BaseModel):
    auth_type: Literal["api_key"] = "api_key"
    header_name: str
    api_key: SecretStr
    value_prefix: str = ""
    "Prepended to the key, e.g. 'ApiKey '."

    def authenticate(self, headers: dict[str, str]) -> dict[str, str]:
        return {
            **headers,
            self.header_name: f"{self.value_prefix}{self.api_key.get_secret_value()}",
        }


class CustomHeaderAuthentication(BaseModel):
    auth_type: Literal["headers"] = "headers"
    headers: dict[str, str]

    @field_validator("headers")
    @classmethod
    def not_empty(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("At least one header is required")

        return value

    def authenticate(self, headers: dict[str, str]) -> dict[str, str]:
        return {**headers, **self.headers}


HttpAuthentication = Annotated[
    Union[
        BasicAuthentication,
        BearerTokenAuthentication,
        ApiKeyAuthentication,
        CustomHeaderAuthentication,
    ],
    Field(discriminator="auth_type"),
]
