from lms.services.media_storage_service import LocalMediaStorage, get_media_storage


def test_ping(client):
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.text == "Pong"


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_unknown_route_uses_error_shape(client):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "OOPS!!! 404 Page Not Found"}


def test_invalid_json_body_is_a_validation_error(client):
    response = client.post("/api/v1/users/login", json={"email": "a@x.com"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "password" in response.json()["message"]


def test_media_factory_falls_back_to_local_without_bucket(settings):
    s3_settings = settings.model_copy(update={"MEDIA_STORAGE_TYPE": "s3", "S3_BUCKET_NAME": ""})

    assert isinstance(get_media_storage(s3_settings), LocalMediaStorage)
