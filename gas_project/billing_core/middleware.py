from django.utils.deprecation import MiddlewareMixin

from .services.tenant import is_super_admin, resolve_tenant


class CurrentTenantMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach the tenant id resolved from the logged-in user
    def process_request(self, request):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            # None for super admins (all tenants) and for members without an owner
            request.tenant_id = resolve_tenant(user)
            request.is_super_admin = is_super_admin(user)
        else:
            # Unauthenticated users
            request.tenant_id = None
            request.is_super_admin = False
