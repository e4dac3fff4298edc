"""Exemption Wizard Models - Pydantic models for Azure resources.

This module defines the records returned by the backend. Field aliases match
the camelCase JSON emitted by the Azure CLI.
Layer: core models only (do not import from other exemption_wizard modules
except config).
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from exemption_wizard.config import ENTIRE_SUBSCRIPTION_LABEL


class AzureModel(BaseModel):
    """Base for records parsed from Azure CLI output."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # az emits null for unset display names
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Subscription(AzureModel):
    """An Azure subscription."""
    id: str
    name: str = ""

    @property
    def scope(self) -> str:
        """Canonical scope path (`/subscriptions/<id>`)."""
        if self.id.startswith("/"):
            return self.id
        return "/subscriptions/" + self.id

    @property
    def short_id(self) -> str:
        """Bare subscription id, as accepted by `--subscription`."""
        if not self.id.startswith("/subscriptions/"):
            return self.id
        return self.id.split("/")[-1]


class ResourceGroup(AzureModel):
    """A resource group, or the whole subscription when built by entire_subscription()."""
    id: str
    name: str = ""

    @classmethod
    def entire_subscription(cls, subscription: Subscription) -> "ResourceGroup":
        return cls(id=subscription.scope, name=ENTIRE_SUBSCRIPTION_LABEL)


class PolicyAssignment(AzureModel):
    """A policy assignment; policy_definition_id may point at a policy set."""
    id: str
    name: str = ""
    display_name: str = Field(default="", alias="displayName")
    scope: str = ""
    policy_definition_id: str = Field(default="", alias="policyDefinitionId")

    @property
    def display_label(self) -> str:
        if self.display_name:
            return self.display_name
        return self.name

    @property
    def short_id(self) -> str:
        if not self.id:
            return ""
        return self.id.split("/")[-1]

    @property
    def is_policy_set(self) -> bool:
        return "policysetdefinitions" in self.policy_definition_id.lower()


class PolicyDefinitionRef(AzureModel):
    """One member of a policy set, as referenced by its containing assignment."""
    policy_definition_id: str = Field(alias="policyDefinitionId")
    reference_id: str = Field(alias="policyDefinitionReferenceId")
    display_name: str = Field(default="", alias="displayName")
