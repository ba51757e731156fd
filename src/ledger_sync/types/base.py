"""Reusable, strict base models for ledger data."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    The field `parent_hash` is dumped as `parentHash`, which matches the key
    style of Ethereum JSON-RPC payloads. Python code keeps using snake_case
    names because population by name stays enabled.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }

    def same_content(self, other: BaseModel, *, ignore: frozenset[str] = frozenset()) -> bool:
        """
        Compare two models field by field, skipping the names in `ignore`.

        Bookkeeping flags (finality, for instance) are not part of what a
        ledger entry *is*, so storage compares content without them.
        """
        if type(self) is not type(other):
            return False
        return self.model_dump(exclude=set(ignore)) == other.model_dump(exclude=set(ignore))
