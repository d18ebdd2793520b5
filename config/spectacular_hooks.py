"""
Custom hooks for drf-spectacular to customize OpenAPI schema.
"""
from django.conf import settings


def remove_extra_security_schemes(result, generator, request, public):
    """Drop auto-detected session/basic schemes; keep only the ones declared in settings."""
    declared = settings.SPECTACULAR_SETTINGS['APPEND_COMPONENTS']['securitySchemes']
    components = result.get('components', {})
    if 'securitySchemes' in components:
        components['securitySchemes'] = dict(declared)
    return result
