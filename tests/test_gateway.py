"""Tests for the transport adapter and the REST gateway — Jenkins is mocked."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import jenkins
import pytest
import requests
from requests.structures import CaseInsensitiveDict

from jenkins_helper.config_store import JenkinsConfig
from jenkins_helper.gateway import JenkinsGateway, TriggerError
from jenkins_helper.jenkins_client import HttpAdapter, get_client


def response(status=200, json_data=None, headers=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.json.return_value = json_data
    return resp


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_client():
    return MagicMock(spec=jenkins.Jenkins)


@pytest.fixture
def gateway(mock_client):
    return JenkinsGateway(HttpAdapter(mock_client))


def sent_request(mock_client) -> requests.Request:
    return mock_client.jenkins_request.call_args.args[0]


# ---------------------------------------------------------------------------
# get_client
# ---------------------------------------------------------------------------
class TestGetClient:
    def test_builds_authenticated_client(self):
        config = JenkinsConfig(url="https://j", username="bob", token="t0k")
        with patch("jenkins_helper.jenkins_client.jenkins.Jenkins") as cls:
            get_client(config)
        cls.assert_called_once_with("https://j", username="bob", password="t0k", timeout=30)

    def test_incomplete_config(self):
        with pytest.raises(ValueError, match="not configured"):
            get_client(JenkinsConfig(url="https://j"))


# ---------------------------------------------------------------------------
# HttpAdapter
# ---------------------------------------------------------------------------
class TestHttpAdapter:
    async def test_get_json(self, mock_client):
        mock_client.jenkins_request.return_value = response(json_data={"a": 1})

        error, data = await HttpAdapter(mock_client).get_json("https://j/api/json")

        assert error is None
        assert data == {"a": 1}
        req = sent_request(mock_client)
        assert req.method == "GET"
        assert req.url == "https://j/api/json"

    @pytest.mark.parametrize(
        "exc",
        [
            jenkins.JenkinsException("401"),
            jenkins.NotFoundException("404"),
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
        ],
    )
    async def test_get_json_errors(self, mock_client, exc):
        mock_client.jenkins_request.side_effect = exc

        error, data = await HttpAdapter(mock_client).get_json("https://j/api/json")

        assert error is exc
        assert data is None

    async def test_get_json_malformed(self, mock_client):
        resp = response()
        resp.json.side_effect = ValueError("Expecting value")
        mock_client.jenkins_request.return_value = resp

        error, data = await HttpAdapter(mock_client).get_json("https://j/api/json")

        assert isinstance(error, ValueError)
        assert data is None

    async def test_get_json_null_body(self, mock_client):
        mock_client.jenkins_request.return_value = response(json_data=None)

        error, data = await HttpAdapter(mock_client).get_json("https://j/api/json")

        assert isinstance(error, ValueError)
        assert "Empty JSON body" in str(error)
        assert data is None

    async def test_post_form(self, mock_client):
        resp = response(201)
        mock_client.jenkins_request.return_value = resp

        error, data = await HttpAdapter(mock_client).post_form("https://j/x", {"K": "v"})

        assert error is None
        assert data is resp
        req = sent_request(mock_client)
        assert req.method == "POST"
        assert req.data == {"K": "v"}

    async def test_post_json_skips_jenkins_auth(self, mock_client):
        with patch("jenkins_helper.jenkins_client.requests.post") as post:
            post.return_value = response(204)
            error, _ = await HttpAdapter(mock_client).post_json(
                "https://hooks.example.com/x", {"stage": "finished"}
            )

        assert error is None
        post.assert_called_once_with(
            "https://hooks.example.com/x", json={"stage": "finished"}, timeout=30
        )
        mock_client.jenkins_request.assert_not_called()

    async def test_post_json_http_error(self, mock_client):
        with patch("jenkins_helper.jenkins_client.requests.post") as post:
            resp = response(500)
            resp.raise_for_status.side_effect = requests.HTTPError("500")
            post.return_value = resp
            error, data = await HttpAdapter(mock_client).post_json("https://h", {})

        assert isinstance(error, requests.HTTPError)
        assert data is None


# ---------------------------------------------------------------------------
# JenkinsGateway
# ---------------------------------------------------------------------------
class TestGatewayUrls:
    async def test_jobs_tree(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(json_data={"jobs": []})

        await gateway.fetch_jobs_tree("https://j")

        assert sent_request(mock_client).url == (
            "https://j/api/json?tree=jobs[name,url,jobs[name,url,jobs[name,url]]]"
        )

    @pytest.mark.parametrize("queue_url", ["https://j/queue/item/5", "https://j/queue/item/5/"])
    async def test_queue_item(self, gateway, mock_client, queue_url):
        mock_client.jenkins_request.return_value = response(json_data={})

        await gateway.fetch_queue_item(queue_url)

        assert sent_request(mock_client).url == "https://j/queue/item/5/api/json"

    async def test_build(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(json_data={})

        await gateway.fetch_build("https://j/job/A/job/B", 12)

        assert sent_request(mock_client).url == "https://j/job/A/job/B/12/api/json"

    async def test_last_build(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(json_data={})

        await gateway.fetch_last_build("https://j/job/A/")

        assert sent_request(mock_client).url == "https://j/job/A/lastBuild/api/json"

    async def test_stage_nodes(self, gateway, mock_client):
        nodes = [{"displayName": "Build", "state": "RUNNING", "result": None}]
        mock_client.jenkins_request.return_value = response(json_data=nodes)

        error, data = await gateway.fetch_stage_nodes("https://j", "Test/App", 3)

        assert error is None
        assert data == nodes
        assert sent_request(mock_client).url == (
            "https://j/blue/rest/organizations/jenkins/pipelines/"
            "Test/pipelines/App/runs/3/nodes/"
        )

    async def test_stage_nodes_not_a_list(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(json_data={"message": "x"})

        error, data = await gateway.fetch_stage_nodes("https://j", "App", 3)

        assert isinstance(error, ValueError)
        assert data is None


class TestTriggerBuild:
    async def test_queue_location(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(
            201, headers={"location": "https://j/queue/item/9/"}
        )

        error, location = await gateway.trigger_build("https://j/job/App", "origin/dev")

        assert error is None
        assert location == "https://j/queue/item/9/"
        req = sent_request(mock_client)
        assert req.url == "https://j/job/App/buildWithParameters"
        assert req.data == {"GIT_BRANCH": "origin/dev"}

    async def test_not_201(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(
            200, headers={"Location": "https://j/queue/item/9/"}
        )

        error, location = await gateway.trigger_build("https://j/job/App/", "main")

        assert isinstance(error, TriggerError)
        assert location is None

    async def test_missing_location(self, gateway, mock_client):
        mock_client.jenkins_request.return_value = response(201)

        error, location = await gateway.trigger_build("https://j/job/App/", "main")

        assert isinstance(error, TriggerError)
        assert location is None

    async def test_transport_error(self, gateway, mock_client):
        mock_client.jenkins_request.side_effect = jenkins.JenkinsException("forbidden")

        error, location = await gateway.trigger_build("https://j/job/App/", "main")

        assert isinstance(error, jenkins.JenkinsException)
        assert location is None


class TestPostWebhook:
    async def test_failure_is_returned_not_raised(self, gateway):
        with patch("jenkins_helper.jenkins_client.requests.post") as post:
            post.side_effect = requests.ConnectionError("no route")
            error, _ = await gateway.post_webhook("https://hooks/x", {"a": 1})

        assert isinstance(error, requests.ConnectionError)
