"""Exceptions raised by the service layer and translated to HTTP responses by views"""
from rest_framework import status
from rest_framework.response import Response


class CRMError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_response(self):
        payload = {'error': self.message}
        payload.update(self.extra)
        return Response(payload, status=self.status_code)


class ValidationFailed(CRMError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(CRMError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(CRMError):
    status_code = status.HTTP_409_CONFLICT


class AccessDenied(CRMError):
    status_code = status.HTTP_403_FORBIDDEN
