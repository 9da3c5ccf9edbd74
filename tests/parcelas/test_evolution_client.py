"""Tests for the Evolution WhatsApp adapter."""

from unittest.mock import patch

import httpx
import pytest

from backend.integrations.evolution_client import EvolutionClient


@pytest.fixture
def mock_httpx():
    with patch("backend.integrations.evolution_client.httpx.Client") as mock:
        yield mock


@pytest.fixture
def client(mock_httpx):
    return EvolutionClient(
        api_url="https://evo.example.com/",
        api_key="secret",
        instance_id="inst-1",
    )


class TestEvolutionClient:
    def test_client_configuration(self, client, mock_httpx):
        kwargs = mock_httpx.call_args.kwargs
        assert kwargs["headers"]["apikey"] == "secret"
        assert kwargs["verify"] is False

    def test_send_text_posts_normalized_number(self, client, mock_httpx):
        mock_httpx.return_value.post.return_value = httpx.Response(201, json={"key": {}})

        assert client.send_text("(11) 98765-4321", "Olá") is True

        mock_httpx.return_value.post.assert_called_once_with(
            "https://evo.example.com/message/sendText/inst-1",
            json={"number": "5511987654321", "text": "Olá"},
        )

    def test_accepts_200(self, client, mock_httpx):
        mock_httpx.return_value.post.return_value = httpx.Response(200, json={})

        assert client.send_text("11987654321", "x") is True

    @pytest.mark.parametrize("status_code", [400, 401, 404, 500, 202])
    def test_non_success_status_is_false(self, client, mock_httpx, status_code):
        mock_httpx.return_value.post.return_value = httpx.Response(status_code, text="err")

        assert client.send_text("11987654321", "x") is False

    def test_transport_error_is_false(self, client, mock_httpx):
        mock_httpx.return_value.post.side_effect = httpx.ConnectError("refused")

        assert client.send_text("11987654321", "x") is False

    @pytest.mark.parametrize(
        "error",
        [
            httpx.InvalidURL("Invalid URL 'evo example'"),
            RuntimeError("Cannot send a request, as the client has been closed."),
        ],
    )
    def test_invalid_url_or_closed_client_is_false(self, client, mock_httpx, error):
        mock_httpx.return_value.post.side_effect = error

        assert client.send_text("11987654321", "x") is False

    def test_number_in_area_code_55_gets_country_code(self, client, mock_httpx):
        mock_httpx.return_value.post.return_value = httpx.Response(201, json={})

        assert client.send_text("(55) 99123-4567", "x") is True

        assert mock_httpx.return_value.post.call_args.kwargs["json"]["number"] == "5555991234567"

    def test_missing_configuration_is_false(self, mock_httpx):
        client = EvolutionClient(api_url="", api_key="", instance_id="")

        assert client.configured is False
        assert client.send_text("11987654321", "x") is False
        mock_httpx.return_value.post.assert_not_called()

    def test_empty_address_is_false(self, client, mock_httpx):
        assert client.send_text("", "x") is False
        mock_httpx.return_value.post.assert_not_called()

    def test_context_manager_closes(self, mock_httpx):
        with EvolutionClient(api_url="u", api_key="k", instance_id="i"):
            pass

        mock_httpx.return_value.close.assert_called_once()
