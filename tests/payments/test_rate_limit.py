from unittest.mock import MagicMock, patch

import redis

from smartlearn.services.payments.rate_limit import check_purchase_rate_limit


@patch("smartlearn.services.payments.rate_limit.redis.Redis.from_url")
def test_allows_until_limit(mock_from_url):
    client = MagicMock()
    client.incr.side_effect = [1, 2, 3, 4, 5, 6]
    mock_from_url.return_value = client

    results = [check_purchase_rate_limit("s1") for _ in range(6)]

    assert results == [True, True, True, True, True, False]
    client.expire.assert_called_once()


@patch("smartlearn.services.payments.rate_limit.redis.Redis.from_url")
def test_fails_open_when_redis_down(mock_from_url):
    client = MagicMock()
    client.incr.side_effect = redis.ConnectionError("down")
    mock_from_url.return_value = client

    assert check_purchase_rate_limit("s1") is True
