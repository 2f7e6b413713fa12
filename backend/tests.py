from unittest.mock import MagicMock
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, ValidationError
from .error_handler import custom_exception_handler
from .exceptions import AuthorizationError, StateConflict, Unauthenticated
from .utils import ActionResult, fail, request_actor, require_actor, service_action, succeed


class ServiceActionTests(SimpleTestCase):
    def test_return_value_is_wrapped(self):
        @service_action("failed")
        def operation():
            return {"value": 1}

        result = operation()
        self.assertEqual(result, ActionResult(success=True, data={"value": 1}))
        self.assertEqual(result.to_dict(), {"success": True, "data": {"value": 1}})

    def test_service_error_keeps_its_status(self):
        @service_action("failed")
        def operation():
            raise AuthorizationError("not yours")

        result = operation()
        self.assertFalse(result.success)
        self.assertEqual(result.error, "not yours")
        self.assertEqual(result.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(result.to_dict(), {"success": False, "error": "not yours"})

    def test_database_error_becomes_generic_failure(self):
        @service_action("Failed to do the thing")
        def operation():
            raise DatabaseError("connection reset")

        with self.assertLogs("backend.utils", level="ERROR"):
            result = operation()
        self.assertEqual(result.error, "Failed to do the thing")
        self.assertEqual(result.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_action_result_passes_through(self):
        @service_action("failed")
        def operation():
            return fail("nope", status.HTTP_409_CONFLICT)

        self.assertEqual(operation().status_code, status.HTTP_409_CONFLICT)

    def test_to_response_uses_success_status(self):
        self.assertEqual(succeed({"id": 1}).to_response(success_status=status.HTTP_201_CREATED).status_code, 201)
        self.assertEqual(fail("missing", status.HTTP_404_NOT_FOUND).to_response(success_status=201).status_code, 404)

    def test_falsy_data_is_kept(self):
        self.assertEqual(succeed(0).to_dict(), {"success": True, "data": 0})


class ActorTests(SimpleTestCase):
    def test_require_actor_rejects_anonymous(self):
        for actor in (None, AnonymousUser()):
            with self.assertRaises(Unauthenticated):
                require_actor(actor)

    def test_request_actor(self):
        request = MagicMock()
        request.user = AnonymousUser()
        self.assertIsNone(request_actor(request))

        user = MagicMock(is_authenticated=True)
        request.user = user
        self.assertIs(request_actor(request), user)


class ExceptionHandlerTests(SimpleTestCase):
    def test_service_error_envelope(self):
        response = custom_exception_handler(StateConflict("taken"), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {"success": False, "error": "taken", "type": "error"})

    def test_drf_error_envelope(self):
        response = custom_exception_handler(NotAuthenticated(), {})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"], "Authentication credentials were not provided.")

    def test_validation_error_envelope(self):
        response = custom_exception_handler(ValidationError({"page": ["A valid integer is required."]}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("page", response.data["error"])

    def test_unknown_errors_are_left_to_django(self):
        self.assertIsNone(custom_exception_handler(ValueError("boom"), {}))
