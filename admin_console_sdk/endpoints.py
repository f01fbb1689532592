from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import Operation


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    id_param: str | None = None

    def resolve(self, entity_id: int | None) -> tuple[str, dict[str, Any]]:
        """Return the concrete path and query params for ``entity_id``."""
        if "{id}" in self.path:
            if entity_id is None:
                raise ValueError(f"Route {self.path} requires an entity id")
            return self.path.replace("{id}", str(entity_id)), {}
        if self.id_param:
            if entity_id is None:
                raise ValueError(f"Route {self.path} requires an entity id")
            return self.path, {self.id_param: entity_id}
        return self.path, {}


@dataclass(frozen=True)
class ResourceEndpoints:
    resource_type: str
    routes: dict[Operation, Route]
    actions: dict[str, Route] = field(default_factory=dict)
    page_param: str = "pageNumber"
    page_size_param: str = "pageSize"
    search_param: str = "search"
    sort_param: str | None = "sortBy"
    deleted_filter_param: str | None = "isDeleted"
    server_paging: bool = True
    id_field: str = "id"

    def route(self, operation: Operation, action: str | None = None) -> Route:
        if operation == Operation.ACTION:
            if action is None or action not in self.actions:
                raise KeyError(f"{self.resource_type} has no action {action!r}")
            return self.actions[action]
        if operation not in self.routes:
            raise KeyError(f"{self.resource_type} does not support {operation.value}")
        return self.routes[operation]


class EndpointRegistry:
    def __init__(self, endpoints: list[ResourceEndpoints] | None = None) -> None:
        self._by_type: dict[str, ResourceEndpoints] = {}
        for item in endpoints or []:
            self.register(item)

    def register(self, endpoints: ResourceEndpoints) -> None:
        self._by_type[endpoints.resource_type] = endpoints

    def get(self, resource_type: str) -> ResourceEndpoints:
        try:
            return self._by_type[resource_type]
        except KeyError:
            raise KeyError(f"Unknown resource type: {resource_type}") from None

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._by_type

    def resource_types(self) -> list[str]:
        return sorted(self._by_type)

    def local_resource_types(self) -> set[str]:
        """Resource types whose list endpoint returns everything in one response."""
        return {name for name, item in self._by_type.items() if not item.server_paging}


def _crud(
    list_path: str,
    create_path: str,
    update: Route,
    soft_delete: Route,
    restore: Route,
    hard_delete: Route,
) -> dict[Operation, Route]:
    return {
        Operation.LIST: Route("GET", list_path),
        Operation.CREATE: Route("POST", create_path),
        Operation.UPDATE: update,
        Operation.SOFT_DELETE: soft_delete,
        Operation.RESTORE: restore,
        Operation.HARD_DELETE: hard_delete,
    }


def default_registry() -> EndpointRegistry:
    """Routes of the admin API the console talks to."""
    return EndpointRegistry(
        [
            ResourceEndpoints(
                resource_type="categories",
                routes=_crud(
                    "/category/getAllCategory",
                    "/category/create",
                    Route("PUT", "/category/updateCategory", id_param="CategoryId"),
                    Route("DELETE", "/category/softDeleteCategory", id_param="categoryId"),
                    Route("DELETE", "/category/unDeleteCategory", id_param="categoryId"),
                    Route("DELETE", "/category/hardDeleteCategory", id_param="categoryId"),
                ),
                page_param="PageNumber",
                page_size_param="PageSize",
            ),
            ResourceEndpoints(
                resource_type="sub_categories",
                routes=_crud(
                    "/subCategory/getAllSubCategory",
                    "/subCategory/create-subCategory",
                    Route("PUT", "/subCategory/updateSubCategory", id_param="subCategoryId"),
                    Route("DELETE", "/subCategory/softDeleteSubCategory", id_param="subCategoryId"),
                    Route("DELETE", "/subCategory/unDeleteSubCategory", id_param="subCategoryId"),
                    Route("DELETE", "/subCategory/hardDeleteSubCategory", id_param="subCategoryId"),
                ),
            ),
            ResourceEndpoints(
                resource_type="bills",
                routes=_crud(
                    "/Billing/getAllBills",
                    "/Billing/create",
                    Route("PUT", "/Billing/update", id_param="Id"),
                    Route("DELETE", "/Billing/softDeleteBill", id_param="Id"),
                    Route("DELETE", "/Billing/unDeleteBill", id_param="Id"),
                    Route("DELETE", "/Billing/hardDeleteBill", id_param="Id"),
                ),
            ),
            ResourceEndpoints(
                resource_type="payment_methods",
                routes=_crud(
                    "/paymentMethod/getAllPaymentMethod",
                    "/paymentMethod/create",
                    Route("PUT", "/paymentMethod/updatePaymentMethod", id_param="Id"),
                    Route("DELETE", "/paymentMethod/softDeletePaymentMethod", id_param="Id"),
                    Route("DELETE", "/paymentMethod/unDeletePaymentMethod", id_param="Id"),
                    Route("DELETE", "/paymentMethod/hardDeletePaymentMethod", id_param="Id"),
                ),
            ),
            ResourceEndpoints(
                resource_type="payment_requests",
                routes={
                    Operation.LIST: Route("GET", "/paymentRequest"),
                    Operation.CREATE: Route("POST", "/paymentRequest"),
                    Operation.UPDATE: Route("PUT", "/paymentRequest/{id}"),
                    Operation.HARD_DELETE: Route("DELETE", "/paymentRequest/{id}"),
                },
                actions={
                    "approve": Route("PUT", "/paymentRequest/{id}/approve"),
                    "reject": Route("PUT", "/paymentRequest/{id}/reject"),
                },
            ),
            ResourceEndpoints(
                resource_type="promo_codes",
                routes=_crud(
                    "/promoCode/getAll",
                    "/promoCode/create",
                    Route("PUT", "/promoCode/update", id_param="id"),
                    Route("DELETE", "/promoCode/softDelete", id_param="id"),
                    Route("PUT", "/promoCode/unDelete", id_param="id"),
                    Route("DELETE", "/promoCode/hardDelete", id_param="id"),
                ),
                actions={
                    "activate": Route("PUT", "/promoCode/activate", id_param="id"),
                    "deactivate": Route("PUT", "/promoCode/deactivate", id_param="id"),
                },
                server_paging=False,
            ),
            ResourceEndpoints(
                resource_type="shipping_configs",
                routes=_crud(
                    "/shipping/getAll",
                    "/shipping/create",
                    Route("PUT", "/shipping/update/{id}"),
                    Route("DELETE", "/shipping/soft-delete/{id}"),
                    Route("PUT", "/shipping/restore/{id}"),
                    Route("DELETE", "/shipping/hard-delete/{id}"),
                ),
                actions={"set_default": Route("PUT", "/shipping/set-default/{id}")},
                server_paging=False,
            ),
            ResourceEndpoints(
                resource_type="notifications",
                routes={
                    Operation.LIST: Route("GET", "/notif/getAllNotifications"),
                    Operation.CREATE: Route("POST", "/notif/send-to-user"),
                },
                actions={
                    "mark_as_read": Route("PUT", "/notif/mark-as-read", id_param="notificationId"),
                    "acknowledge": Route("PUT", "/notif/acknowledge-notification", id_param="notificationId"),
                },
            ),
            ResourceEndpoints(
                resource_type="product_stores",
                routes=_crud(
                    "/Store",
                    "/Store",
                    Route("PUT", "/Store/{id}"),
                    Route("DELETE", "/Store/softDelete/{id}"),
                    Route("PUT", "/Store/unDelete/{id}"),
                    Route("DELETE", "/Store/hardDelete/{id}"),
                ),
            ),
            ResourceEndpoints(
                resource_type="banner_events",
                routes=_crud(
                    "/api/banner-events",
                    "/api/banner-events/create",
                    Route("PUT", "/api/banner-events/{id}"),
                    Route("DELETE", "/api/banner-events/softDeleteBannerEvent", id_param="bannerId"),
                    Route("PUT", "/api/banner-events/UnDeleteBannerEvent", id_param="bannerId"),
                    Route("DELETE", "/api/banner-events/HardDeleteBannerEvent", id_param="bannerId"),
                ),
                actions={
                    "toggle_active": Route("PUT", "/api/banner-events/activateOrDeactivate", id_param="bannerId"),
                },
            ),
            ResourceEndpoints(
                resource_type="service_areas",
                routes=_crud(
                    "/location/service-areas",
                    "/location/create",
                    Route("PUT", "/location/update", id_param="id"),
                    Route("DELETE", "/location/softDelete", id_param="id"),
                    Route("PUT", "/location/unDelete", id_param="id"),
                    Route("DELETE", "/location/hardDelete", id_param="id"),
                ),
            ),
        ]
    )
