from rest_framework.response import Response
from rest_framework.views import exception_handler
from .exceptions import ServiceError


def custom_exception_handler(exc, context):
    if isinstance(exc, ServiceError):
        return Response({'success': False, 'error': exc.message, 'type': 'error'}, status=exc.status_code)
    response = exception_handler(exc, context)
    if response is not None:
        data = response.data
        if isinstance(data, dict) and 'detail' in data:
            error = str(data.pop('detail'))
        else:
            error = str(data)
        response.data = {'success': False, 'error': error, 'type': 'error'}
    return response
