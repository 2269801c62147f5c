"""
Filter grammar for the durable vector store.

A filter is a conjunction (``must``) of conditions, each matching one
payload key either against a single value or against any of a list.
"""

from typing import Union

from pydantic import BaseModel, Field

Scalar = Union[str, int, bool]


class MatchValue(BaseModel):
    value: Scalar


class MatchAny(BaseModel):
    any: list[Scalar] = Field(..., min_length=1)


class Condition(BaseModel):
    key: str
    match: Union[MatchValue, MatchAny]

    @classmethod
    def equals(cls, key: str, value: Scalar) -> "Condition":
        return cls(key=key, match=MatchValue(value=value))

    @classmethod
    def any_of(cls, key: str, values: list[Scalar]) -> "Condition":
        return cls(key=key, match=MatchAny(any=list(values)))


class Filter(BaseModel):
    must: list[Condition] = Field(default_factory=list)

    def keys(self) -> list[str]:
        return [condition.key for condition in self.must]

    def matches(self, payload: dict) -> bool:
        """
        Evaluate the conjunction against a payload dictionary.

        A list-valued payload field matches when any of its elements does.
        """
        for condition in self.must:
            actual = payload.get(condition.key)
            candidates = actual if isinstance(actual, list) else [actual]
            if isinstance(condition.match, MatchValue):
                accepted = [condition.match.value]
            else:
                accepted = condition.match.any
            if not any(value in accepted for value in candidates):
                return False
        return True
