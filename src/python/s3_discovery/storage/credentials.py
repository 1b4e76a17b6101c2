"""Builds boto3 sessions for each supported credentials type."""

from __future__ import annotations

import os

import boto3
import botocore.session
from botocore.credentials import (
    CredentialProvider,
    CredentialResolver,
    EnvProvider,
    InstanceMetadataFetcher,
    InstanceMetadataProvider,
    SharedCredentialProvider,
)

from ..config import AuthenticationType, DiscoveryConfig

_DEFAULT_CREDENTIALS_FILE = "~/.aws/credentials"


def create_session(config: DiscoveryConfig) -> boto3.session.Session:
    """Return a boto3 session whose credentials follow ``config.credentials_type``."""
    credentials_type = config.credentials_type

    if credentials_type == AuthenticationType.DEFAULT:
        return boto3.session.Session(profile_name=config.credentials_profile)

    if credentials_type in (AuthenticationType.ACCESS_KEY, AuthenticationType.TEMPORARY_SESSION):
        session_token = None
        if credentials_type == AuthenticationType.TEMPORARY_SESSION and config.session_token is not None:
            session_token = config.session_token.get_secret_value()
        return boto3.session.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key.get_secret_value() if config.secret_access_key else None,
            aws_session_token=session_token,
        )

    core_session = botocore.session.Session()
    core_session.register_component(
        "credential_provider",
        CredentialResolver(providers=_providers_for(config)),
    )
    return boto3.session.Session(botocore_session=core_session)


def _providers_for(config: DiscoveryConfig) -> list[CredentialProvider]:
    credentials_type = config.credentials_type
    if credentials_type == AuthenticationType.ENVIRONMENT_VARIABLES:
        return [EnvProvider()]
    if credentials_type == AuthenticationType.USER_CREDENTIALS_FILE:
        creds_file = os.environ.get("AWS_SHARED_CREDENTIALS_FILE", _DEFAULT_CREDENTIALS_FILE)
        return [
            SharedCredentialProvider(
                creds_filename=os.path.expanduser(creds_file),
                profile_name=config.credentials_profile or "default",
            )
        ]
    if credentials_type == AuthenticationType.INSTANCE_PROFILE_CREDENTIALS:
        fetcher = InstanceMetadataFetcher(timeout=config.request_timeout, num_attempts=2)
        return [InstanceMetadataProvider(iam_role_fetcher=fetcher)]
    raise ValueError(f"Unknown credentials type: {credentials_type}")
