import pytest
from unittest.mock import AsyncMock, MagicMock

from api.routes import create_app, parse_inbound


@pytest.fixture
def mock_router():
    router = MagicMock()
    router.handle_inbound_message = AsyncMock()
    return router


@pytest.fixture
def test_client(mock_router):
    app = create_app(router=mock_router)
    app.config['TESTING'] = True
    return app.test_client()


def test_text_message(test_client, mock_router):
    """Text messages are routed and answered with empty TwiML"""
    response = test_client.post('/webhook', data={
        'From': 'whatsapp:+905551112233',
        'Body': 'rapor',
        'NumMedia': '0',
    })

    assert response.status_code == 200
    assert '<Response />' in response.get_data(as_text=True)
    phone, payload = mock_router.handle_inbound_message.call_args[0]
    assert phone == '+905551112233'
    assert payload.text == 'rapor'
    assert not payload.is_image


def test_image_message(test_client, mock_router):
    test_client.post('/webhook', data={
        'From': 'whatsapp:+905551112233',
        'Body': '',
        'NumMedia': '1',
        'MediaUrl0': 'https://api.twilio.com/media/ME1',
        'MediaContentType0': 'image/jpeg',
    })

    _, payload = mock_router.handle_inbound_message.call_args[0]
    assert payload.image_url == 'https://api.twilio.com/media/ME1'
    assert payload.content_type == 'image/jpeg'


def test_router_errors_still_return_200(test_client, mock_router):
    mock_router.handle_inbound_message.side_effect = Exception("boom")
    response = test_client.post('/webhook', data={'From': 'whatsapp:+905551112233', 'Body': 'x'})
    assert response.status_code == 200


def test_missing_sender(test_client, mock_router):
    response = test_client.post('/webhook', data={'Body': 'rapor'})
    assert response.status_code == 400
    mock_router.handle_inbound_message.assert_not_called()


def test_voice_notes_are_not_images():
    _, payload = parse_inbound({
        'From': 'whatsapp:+905551112233',
        'NumMedia': '1',
        'MediaUrl0': 'https://api.twilio.com/media/ME2',
        'MediaContentType0': 'audio/ogg',
    })
    assert payload.image_url is None
    assert payload.text == ''


def test_health_endpoints(test_client):
    assert test_client.get('/').get_json() == {'status': 'healthy'}
    assert test_client.get('/test').get_json()['status'] == 'ok'
