"""Read-only configuration views handed to each controller.

Every controller only sees the part of :class:`ControllerSettings` it
consumes.  Views are frozen, so a controller cannot write back into the
configuration after startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta

    from cmcontroller.config.settings import (
        AmbientCredentialsSettings,
        ControllerSettings,
        DNS01Settings,
        HTTP01SolverSettings,
        IngressShimSettings,
        KeystoreSettings,
    )


@dataclass(frozen=True)
class IssuerControllerView:
    """Options read by the Issuer and ClusterIssuer controllers."""

    cluster_resource_namespace: str
    namespace: str
    ambient_credentials: AmbientCredentialsSettings


@dataclass(frozen=True)
class CertificateControllerView:
    """Options read by the Certificate controller."""

    renew_before_expiry_duration: timedelta
    enable_certificate_owner_ref: bool
    keystores: KeystoreSettings


@dataclass(frozen=True)
class ChallengeControllerView:
    """Options read by the ACME challenges controller."""

    acme_http01_solver: HTTP01SolverSettings
    dns01: DNS01Settings
    max_concurrent_challenges: int
    ambient_credentials: AmbientCredentialsSettings


@dataclass(frozen=True)
class RequestSignerView:
    """Options read by the CertificateRequest signers."""

    cluster_resource_namespace: str
    ambient_credentials: AmbientCredentialsSettings


def _issuer_view(s: ControllerSettings) -> IssuerControllerView:
    return IssuerControllerView(
        cluster_resource_namespace=s.cluster_resource_namespace,
        namespace=s.namespace,
        ambient_credentials=s.ambient_credentials,
    )


def _certificate_view(s: ControllerSettings) -> CertificateControllerView:
    return CertificateControllerView(
        renew_before_expiry_duration=s.renew_before_expiry_duration,
        enable_certificate_owner_ref=s.enable_certificate_owner_ref,
        keystores=s.keystores,
    )


def _challenge_view(s: ControllerSettings) -> ChallengeControllerView:
    return ChallengeControllerView(
        acme_http01_solver=s.acme_http01_solver,
        dns01=s.dns01,
        max_concurrent_challenges=s.max_concurrent_challenges,
        ambient_credentials=s.ambient_credentials,
    )


def _ingress_shim_view(s: ControllerSettings) -> IngressShimSettings:
    return s.ingress_shim


def _signer_view(s: ControllerSettings) -> RequestSignerView:
    return RequestSignerView(
        cluster_resource_namespace=s.cluster_resource_namespace,
        ambient_credentials=s.ambient_credentials,
    )


_VIEW_BUILDERS: dict[str, Callable[[ControllerSettings], object]] = {
    "issuers": _issuer_view,
    "clusterissuers": _issuer_view,
    "certificates": _certificate_view,
    "ingress-shim": _ingress_shim_view,
    "orders": _issuer_view,
    "challenges": _challenge_view,
    "certificaterequests-issuer-acme": _signer_view,
    "certificaterequests-issuer-ca": _signer_view,
    "certificaterequests-issuer-selfsigned": _signer_view,
    "certificaterequests-issuer-vault": _signer_view,
    "certificaterequests-issuer-venafi": _signer_view,
}


def controller_views(settings: ControllerSettings) -> dict[str, object]:
    """Map each enabled controller to the view it is started with.

    Expects *settings* to have passed :func:`validate`; an unknown
    controller name raises :class:`KeyError`.
    """
    views: dict[str, object] = {}
    for name in settings.enabled_controllers:
        if name in views:
            continue
        views[name] = _VIEW_BUILDERS[name](settings)
    return views
