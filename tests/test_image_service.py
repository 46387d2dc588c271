import pytest
from botocore.exceptions import ClientError

from imageshare.image_service import service
from imageshare.image_service.models import ImageRecord, Owner, UploadedImage
from imageshare.exceptions import (
    ForbiddenException,
    ImageNotFoundException,
    InvalidContentTypeException,
    InvalidImageIdException,
    InvalidInputException,
    PresignFailedException,
    StoreException,
    UnauthorizedException,
)

VALID_ID = "65a1b2c3d4e5f60718293a4b"
KEY = "0f8fad5b-d9cb-469f-a165-70867728950e.png"


def client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, operation)


def stored_item(owner_id="user-alice", public=True, liked_by=None):
    item = ImageRecord(
        image_id=VALID_ID,
        owner=Owner(id=owner_id, name="N", username="n"),
        public=public,
        key=KEY,
        original_filename="cat.png",
    ).to_item()
    if liked_by:
        item["liked_by"] = set(liked_by)
    return item


# ------------------------------
# presign_uploads
# ------------------------------

@pytest.mark.asyncio
async def test_presign_uploads_returns_grants_in_order(mocker, alice):
    mock_s3 = mocker.Mock()
    mock_s3.generate_presigned_upload_url.side_effect = lambda key, content_type: f"https://s3/{key}?ct={content_type}"

    grants = await service.presign_uploads(mock_s3, alice, ["image/png", "image/jpeg", "image/gif"])

    assert [g.key.rsplit(".", 1)[1] for g in grants] == ["png", "jpeg", "gif"]
    assert len({g.key for g in grants}) == 3
    for grant in grants:
        assert grant.upload_url.startswith(f"https://s3/raw/{grant.key}")
    assert mock_s3.generate_presigned_upload_url.call_count == 3


@pytest.mark.asyncio
async def test_presign_uploads_requires_user(mocker):
    mock_s3 = mocker.Mock()
    with pytest.raises(UnauthorizedException):
        await service.presign_uploads(mock_s3, None, ["image/png"])
    mock_s3.generate_presigned_upload_url.assert_not_called()


@pytest.mark.asyncio
async def test_presign_uploads_rejects_empty_list(mocker, alice):
    with pytest.raises(InvalidInputException):
        await service.presign_uploads(mocker.Mock(), alice, [])


@pytest.mark.asyncio
async def test_presign_uploads_unknown_type_aborts_batch(mocker, alice):
    mock_s3 = mocker.Mock()
    with pytest.raises(InvalidContentTypeException):
        await service.presign_uploads(mock_s3, alice, ["image/png", "application/zip"])
    mock_s3.generate_presigned_upload_url.assert_not_called()


@pytest.mark.asyncio
async def test_presign_uploads_fails_whole_batch(mocker, alice):
    mock_s3 = mocker.Mock()
    mock_s3.generate_presigned_upload_url.side_effect = [
        "https://s3/ok",
        client_error("PutObject"),
    ]
    with pytest.raises(PresignFailedException):
        await service.presign_uploads(mock_s3, alice, ["image/png", "image/png"])


# ------------------------------
# commit_uploads
# ------------------------------

@pytest.mark.asyncio
async def test_commit_uploads_creates_records_in_order(db_service, alice):
    images = [
        UploadedImage(image_key=f"0f8fad5b-d9cb-469f-a165-7086772895{i:02d}.png", original_filename=f"{i}.png")
        for i in range(3)
    ]
    records = await service.commit_uploads(db_service, alice, images, public=False)

    assert [r.original_filename for r in records] == ["0.png", "1.png", "2.png"]
    assert all(r.owner == alice and r.public is False for r in records)
    assert db_service.get_metadata(records[0].image_id)["visibility"] == "private"


@pytest.mark.asyncio
async def test_commit_uploads_rejects_foreign_key(mocker, alice):
    mock_db = mocker.Mock()
    images = [UploadedImage(image_key="../../other-user/photo.png", original_filename="x.png")]
    with pytest.raises(InvalidInputException):
        await service.commit_uploads(mock_db, alice, images, public=True)
    mock_db.put_metadata.assert_not_called()


@pytest.mark.asyncio
async def test_commit_uploads_does_not_roll_back_siblings(mocker, alice):
    mock_db = mocker.Mock()
    mock_db.put_metadata.side_effect = [None, client_error("PutItem")]
    images = [
        UploadedImage(image_key=KEY, original_filename="a.png"),
        UploadedImage(image_key=KEY.replace(".png", ".gif"), original_filename="b.gif"),
    ]
    with pytest.raises(StoreException):
        await service.commit_uploads(mock_db, alice, images, public=True)
    assert mock_db.put_metadata.call_count == 2
    mock_db.delete_owned_metadata.assert_not_called()


def test_create_image_snapshots_owner(mocker, alice):
    mock_db = mocker.Mock()
    image = service.create_image(mock_db, alice, True, KEY, "cat.png")
    alice.name = "Renamed"
    assert image.owner.name == "Alice"
    mock_db.put_metadata.assert_called_once()


# ------------------------------
# get_visible_image
# ------------------------------

def test_get_visible_image_public(mocker, bob):
    mock_db = mocker.Mock()
    mock_db.get_metadata.return_value = stored_item(public=True)
    assert service.get_visible_image(mock_db, VALID_ID, None).image_id == VALID_ID
    assert service.get_visible_image(mock_db, VALID_ID, bob).image_id == VALID_ID


def test_get_visible_image_private_owner_only(mocker, alice, bob):
    mock_db = mocker.Mock()
    mock_db.get_metadata.return_value = stored_item(public=False)
    assert service.get_visible_image(mock_db, VALID_ID, alice).public is False
    with pytest.raises(ForbiddenException):
        service.get_visible_image(mock_db, VALID_ID, bob)
    with pytest.raises(ForbiddenException):
        service.get_visible_image(mock_db, VALID_ID, None)


def test_get_visible_image_not_found(mocker):
    mock_db = mocker.Mock()
    mock_db.get_metadata.return_value = None
    with pytest.raises(ImageNotFoundException):
        service.get_visible_image(mock_db, VALID_ID, None)


@pytest.mark.parametrize("operation", ["get", "delete", "like", "unlike"])
def test_malformed_id_rejected_before_query(mocker, alice, operation):
    mock_db = mocker.Mock()
    calls = {
        "get": lambda: service.get_visible_image(mock_db, "not-an-id", alice),
        "delete": lambda: service.remove_image(mock_db, "not-an-id", alice),
        "like": lambda: service.like_image(mock_db, "not-an-id", alice),
        "unlike": lambda: service.unlike_image(mock_db, "not-an-id", alice),
    }
    with pytest.raises(InvalidImageIdException):
        calls[operation]()
    assert mock_db.method_calls == []


# ------------------------------
# remove_image / release_storage_object
# ------------------------------

def test_remove_image_success(mocker, alice):
    mock_db = mocker.Mock()
    mock_db.delete_owned_metadata.return_value = stored_item()
    image = service.remove_image(mock_db, VALID_ID, alice)
    assert image.key == KEY
    mock_db.delete_owned_metadata.assert_called_once_with(VALID_ID, alice.id)


def test_remove_image_already_deleted(mocker, alice):
    mock_db = mocker.Mock()
    mock_db.delete_owned_metadata.return_value = None
    mock_db.get_metadata.return_value = None
    assert service.remove_image(mock_db, VALID_ID, alice) is None


def test_remove_image_of_other_user_is_forbidden(mocker, bob):
    mock_db = mocker.Mock()
    mock_db.delete_owned_metadata.return_value = None
    mock_db.get_metadata.return_value = stored_item(owner_id="user-alice")
    with pytest.raises(ForbiddenException):
        service.remove_image(mock_db, VALID_ID, bob)


def test_remove_image_requires_user(mocker):
    mock_db = mocker.Mock()
    with pytest.raises(UnauthorizedException):
        service.remove_image(mock_db, VALID_ID, None)
    mock_db.delete_owned_metadata.assert_not_called()


def test_remove_image_store_error(mocker, alice):
    mock_db = mocker.Mock()
    mock_db.delete_owned_metadata.side_effect = client_error("DeleteItem")
    with pytest.raises(StoreException):
        service.remove_image(mock_db, VALID_ID, alice)


def test_release_storage_object_deletes_raw_key(mocker):
    mock_s3 = mocker.Mock()
    service.release_storage_object(mock_s3, KEY)
    mock_s3.delete.assert_called_once_with(f"raw/{KEY}")


def test_release_storage_object_swallows_errors(mocker):
    mock_s3 = mocker.Mock()
    mock_s3.delete.side_effect = client_error("DeleteObject")
    service.release_storage_object(mock_s3, KEY)
    mock_s3.delete.assert_called_once()


# ------------------------------
# like_image / unlike_image (moto)
# ------------------------------

@pytest.fixture
def public_image(db_service, alice):
    return service.create_image(db_service, alice, True, KEY, "cat.png")


def test_like_is_idempotent(db_service, public_image, bob):
    once = service.like_image(db_service, public_image.image_id, bob)
    twice = service.like_image(db_service, public_image.image_id, bob)
    assert once.liked_by == {bob.id}
    assert twice.liked_by == once.liked_by


def test_likes_from_different_users_accumulate(db_service, public_image, alice, bob):
    service.like_image(db_service, public_image.image_id, alice)
    image = service.like_image(db_service, public_image.image_id, bob)
    assert image.liked_by == {alice.id, bob.id}


def test_unlike_after_like_restores_state(db_service, public_image, alice, bob):
    service.like_image(db_service, public_image.image_id, alice)
    service.like_image(db_service, public_image.image_id, bob)
    image = service.unlike_image(db_service, public_image.image_id, bob)
    assert image.liked_by == {alice.id}


def test_unlike_without_like_is_noop(db_service, public_image, bob):
    image = service.unlike_image(db_service, public_image.image_id, bob)
    assert image.liked_by == set()
    assert image.image_id == public_image.image_id


def test_like_missing_image(db_service, bob):
    with pytest.raises(ImageNotFoundException):
        service.like_image(db_service, VALID_ID, bob)
    with pytest.raises(ImageNotFoundException):
        service.unlike_image(db_service, VALID_ID, bob)


def test_like_private_image_of_other_user_is_forbidden(db_service, alice, bob):
    private = service.create_image(db_service, alice, False, KEY, "secret.png")
    with pytest.raises(ForbiddenException):
        service.like_image(db_service, private.image_id, bob)
    assert service.like_image(db_service, private.image_id, alice).liked_by == {alice.id}


def test_like_requires_user(db_service, public_image):
    with pytest.raises(UnauthorizedException):
        service.like_image(db_service, public_image.image_id, None)
    with pytest.raises(UnauthorizedException):
        service.unlike_image(db_service, public_image.image_id, None)


def test_uppercase_id_is_looked_up_lowercased(mocker):
    mock_db = mocker.Mock()
    mock_db.get_metadata.return_value = stored_item(public=True)
    service.get_visible_image(mock_db, VALID_ID.upper(), None)
    mock_db.get_metadata.assert_called_once_with(VALID_ID)


def test_close_releases_clients(s3_service, db_service, mocker):
    s3_close = mocker.patch.object(s3_service.client, "close")
    db_close = mocker.patch.object(db_service.resource.meta.client, "close")
    s3_service.close()
    db_service.close()
    s3_close.assert_called_once()
    db_close.assert_called_once()
