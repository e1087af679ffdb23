import pytest

from jobtrace.config import JobTraceConfig


def test_defaults():
    config = JobTraceConfig()

    assert config.correlation_key == "jobOrderId"
    assert config.poll_interval == 2.0
    assert config.costing == "auto"
    assert config.order_by_time is False


def test_from_env_reads_prefixed_variables():
    environ = {
        "JOBTRACE_REGION": "ap-southeast-1",
        "JOBTRACE_TRACKER_NAME": "FleetTracker",
        "JOBTRACE_GEOFENCE_COLLECTION": "Depots",
        "JOBTRACE_ROUTING_URL": "http://valhalla:8002",
        "JOBTRACE_SOCKET_URL": "ws://events:4000",
        "JOBTRACE_TIMEOUT": "12.5",
        "JOBTRACE_POLL_INTERVAL": "5",
        "JOBTRACE_ORDER_BY_TIME": "true",
        "JOBTRACE_LOG_LEVEL": "debug",
        "JOBTRACE_CORRELATION_KEY": "orderId",
    }

    config = JobTraceConfig.from_env(environ)

    assert config.region == "ap-southeast-1"
    assert config.tracker_name == "FleetTracker"
    assert config.geofence_collection == "Depots"
    assert config.routing_url == "http://valhalla:8002"
    assert config.socket_url == "ws://events:4000"
    assert config.timeout == 12.5
    assert config.poll_interval == 5.0
    assert config.order_by_time is True
    assert config.log_level == "DEBUG"
    assert config.correlation_key == "orderId"


def test_from_env_falls_back_to_aws_region():
    config = JobTraceConfig.from_env({"AWS_REGION": "eu-west-1"})
    assert config.region == "eu-west-1"


def test_from_env_ignores_empty_values():
    config = JobTraceConfig.from_env({"JOBTRACE_ROUTING_URL": ""})
    assert config.routing_url == JobTraceConfig().routing_url


def test_from_env_uses_process_environment(monkeypatch):
    monkeypatch.setenv("JOBTRACE_COSTING", "bicycle")

    config = JobTraceConfig.from_env(dotenv=False)

    assert config.costing == "bicycle"


@pytest.mark.parametrize("name", ["JOBTRACE_TIMEOUT", "JOBTRACE_POLL_INTERVAL"])
def test_from_env_rejects_non_numeric_values(name):
    with pytest.raises(ValueError, match=name):
        JobTraceConfig.from_env({name: "thirty"})
