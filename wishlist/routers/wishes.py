import logging

from fastapi import APIRouter, Depends, Request

from wishlist.controller import WishListController
from wishlist.core.context import get_cid
from wishlist.core.errors import ApiError, RepositoryFailure
from wishlist.schemas import Wish, WishIn

router = APIRouter(prefix="/wishes")

logger = logging.getLogger("wishlist.api")


def get_controller(request: Request) -> WishListController:
    return request.app.state.controller


def _raise_storage_error(
    controller: WishListController, error: Exception | None
) -> None:
    # last_error may already hold a later failure from another request
    if controller.last_error.value is error:
        controller.clear_error()
    operation = error.operation if isinstance(error, RepositoryFailure) else "unknown"
    logger.warning(
        "storage_error",
        extra={"correlation_id": get_cid(), "operation": operation},
    )
    raise ApiError(
        code="storage_error", message=str(error or "storage failure"), status=503
    )


async def _get_or_404(controller: WishListController, wish_id: int) -> Wish:
    wish = await controller.find_wish(wish_id)
    if wish is None:
        raise ApiError(code="not_found", message="wish doesn't exist", status=404)
    return wish


@router.get("", response_model=list[Wish])
async def list_wishes(controller: WishListController = Depends(get_controller)):
    return await controller.snapshot()


@router.get("/{wish_id}", response_model=Wish)
async def get_wish(wish_id: int, controller: WishListController = Depends(get_controller)):
    return await _get_or_404(controller, wish_id)


@router.post("", status_code=201, response_model=Wish)
async def create_wish(
    data: WishIn, controller: WishListController = Depends(get_controller)
):
    task = controller.add_wish(data.to_wish())
    wish_id = await task
    if wish_id is None:
        _raise_storage_error(controller, controller.failure_of(task))
    return await _get_or_404(controller, wish_id)


@router.patch("/{wish_id}", response_model=Wish)
async def edit_wish(
    wish_id: int,
    data: WishIn,
    controller: WishListController = Depends(get_controller),
):
    await _get_or_404(controller, wish_id)

    task = controller.update_wish(data.to_wish(wish_id))
    if await task is None:
        _raise_storage_error(controller, controller.failure_of(task))
    return await _get_or_404(controller, wish_id)


@router.delete("/{wish_id}", status_code=204)
async def delete_wish(wish_id: int, controller: WishListController = Depends(get_controller)):
    wish = await _get_or_404(controller, wish_id)

    task = controller.delete_wish(wish)
    if await task is None:
        _raise_storage_error(controller, controller.failure_of(task))
    return None
