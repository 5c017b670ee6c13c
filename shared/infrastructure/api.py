"""REST framework glue shared by all API apps."""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from rest_framework import serializers  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):  # type: ignore
    """Render domain errors as JSON; defer everything else to DRF."""

    if isinstance(exc, DomainError):
        view = context.get("view")
        if exc.status_code >= 500:
            logger.error(
                "%s in %s: %s",
                exc.__class__.__name__,
                view.__class__.__name__ if view else "unknown view",
                exc.message,
                exc_info=exc,
            )
        else:
            logger.info("%s: %s", exc.__class__.__name__, exc.message)
        return Response(exc.to_dict(), status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        exc = serializers.ValidationError(serializers.as_serializer_error(exc))

    return exception_handler(exc, context)
