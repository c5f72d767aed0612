import asyncio
import unittest
from unittest import mock

import requests

from drawcache.datasource.caixa import CaixaDataSource, CaixaDataSourceConfig, normalize_payload
from drawcache.errors import ContestNotFoundError, FetchError, TransientFetchError, ValidationError
from drawcache.tests.helpers import LOTOFACIL, MEGASENA, RecordingSleep, make_payload
from drawcache.variants import get_variant


def _response(status_code: int, payload=None) -> mock.Mock:
    resp = mock.Mock(status_code=status_code)
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


class NormalizePayloadTests(unittest.TestCase):
    def test_numeric_strings_are_coerced_and_sorted(self) -> None:
        payload = make_payload(MEGASENA, 2700, numbers=["42", "07", "13", "01", "60", "25"])

        record = normalize_payload(MEGASENA, payload)

        self.assertEqual(record.contest, 2700)
        self.assertEqual(record.numbers, (1, 7, 13, 25, 42, 60))
        self.assertEqual(record.draw_date, "01/01/2024")
        self.assertEqual(record.next_date, "03/01/2024")
        self.assertFalse(record.accumulated)

    def test_falls_back_to_drawing_order_field(self) -> None:
        payload = make_payload(MEGASENA, 10)
        payload["listaDezenas"] = []
        payload["dezenasSorteadasOrdemSorteio"] = ["33", "02", "18", "45", "09", "51"]

        record = normalize_payload(MEGASENA, payload)

        self.assertEqual(record.numbers, (2, 9, 18, 33, 45, 51))

    def test_falls_back_to_realization_date(self) -> None:
        payload = make_payload(MEGASENA, 10)
        payload["dataApuracao"] = ""
        payload["dataRealizacao"] = "05/02/2024"
        self.assertEqual(normalize_payload(MEGASENA, payload).draw_date, "05/02/2024")

    def test_short_draw_is_rejected(self) -> None:
        payload = make_payload(LOTOFACIL, 3559, numbers=[str(n) for n in range(1, 15)])
        with self.assertRaises(ValidationError) as ctx:
            normalize_payload(LOTOFACIL, payload)
        self.assertIn("expected 15 numbers, got 14", str(ctx.exception))

    def test_extra_numbers_are_truncated(self) -> None:
        payload = make_payload(MEGASENA, 5, numbers=["1", "2", "3", "4", "5", "6", "7"])
        self.assertEqual(normalize_payload(MEGASENA, payload).numbers, (1, 2, 3, 4, 5, 6))

    def test_out_of_range_number_is_rejected(self) -> None:
        payload = make_payload(MEGASENA, 5, numbers=["1", "2", "3", "4", "5", "61"])
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, payload)

    def test_lotomania_accepts_zero(self) -> None:
        lotomania = get_variant("lotomania")
        numbers = ["00"] + [f"{n:02d}" for n in range(5, 100, 5)]
        record = normalize_payload(lotomania, make_payload(lotomania, 2600, numbers=numbers))
        self.assertEqual(record.numbers[0], 0)
        self.assertEqual(len(record.numbers), 20)

    def test_duplicated_number_is_rejected(self) -> None:
        payload = make_payload(MEGASENA, 5, numbers=["1", "2", "3", "4", "5", "5"])
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, payload)

    def test_non_numeric_value_is_rejected(self) -> None:
        payload = make_payload(MEGASENA, 5, numbers=["1", "2", "3", "4", "5", "x"])
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, payload)

    def test_missing_numbers_and_date_are_rejected(self) -> None:
        no_numbers = make_payload(MEGASENA, 5)
        del no_numbers["listaDezenas"]
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, no_numbers)

        no_date = make_payload(MEGASENA, 5)
        del no_date["dataApuracao"]
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, no_date)

    def test_malformed_contest_number_is_rejected(self) -> None:
        payload = make_payload(MEGASENA, 5)
        payload["numero"] = -3
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, payload)

    def test_unusable_estimate_does_not_reject_draw(self) -> None:
        payload = make_payload(MEGASENA, 10)
        payload["valorEstimadoProximoConcurso"] = ""
        self.assertEqual(normalize_payload(MEGASENA, payload).next_estimate, 0)

        payload["valorEstimadoProximoConcurso"] = "a definir"
        self.assertEqual(normalize_payload(MEGASENA, payload).next_estimate, 0)

        payload["valorEstimadoProximoConcurso"] = "3.500.000,50"
        self.assertEqual(normalize_payload(MEGASENA, payload).next_estimate, 3500000.5)

    def test_contest_mismatch_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            normalize_payload(MEGASENA, make_payload(MEGASENA, 6), expected_contest=5)


class CaixaDataSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock()
        self.session.headers = {}
        self.sleep = RecordingSleep()
        self.source = CaixaDataSource(
            CaixaDataSourceConfig(timeout_seconds=5, retry_attempts=3, retry_base_delay=1.0),
            session=self.session,
            sleep=self.sleep,
        )

    def test_fetch_latest_hits_base_endpoint(self) -> None:
        self.session.get.return_value = _response(200, make_payload(MEGASENA, 2750))

        record = asyncio.run(self.source.fetch_latest(MEGASENA))

        self.assertEqual(record.contest, 2750)
        self.session.get.assert_called_once_with(MEGASENA.api_url, timeout=5)
        self.assertEqual(self.session.headers["Accept"], "application/json")

    def test_latest_contest_needs_only_the_number(self) -> None:
        self.session.get.return_value = _response(200, {"numero": 3561, "listaDezenas": []})

        latest = asyncio.run(self.source.fetch_latest_contest(LOTOFACIL))

        self.assertEqual(latest, 3561)
        self.session.get.assert_called_once_with(LOTOFACIL.api_url, timeout=5)

    def test_latest_contest_without_number_is_rejected(self) -> None:
        self.session.get.return_value = _response(200, {"numero": 0})
        with self.assertRaises(ValidationError):
            asyncio.run(self.source.fetch_latest_contest(LOTOFACIL))

    def test_fetch_contest_appends_number(self) -> None:
        self.session.get.return_value = _response(200, make_payload(MEGASENA, 12))

        asyncio.run(self.source.fetch_contest(MEGASENA, 12))

        self.session.get.assert_called_once_with(f"{MEGASENA.api_url}/12", timeout=5)

    def test_transient_errors_are_retried_with_exponential_backoff(self) -> None:
        self.session.get.side_effect = [
            _response(503),
            requests.ConnectionError("reset by peer"),
            _response(200, make_payload(MEGASENA, 7)),
        ]

        record = asyncio.run(self.source.fetch_contest(MEGASENA, 7))

        self.assertEqual(record.contest, 7)
        self.assertEqual(self.session.get.call_count, 3)
        self.assertEqual(self.sleep.delays, [1.0, 2.0])

    def test_exhausted_retries_raise_transient_error(self) -> None:
        self.session.get.side_effect = [_response(500), _response(502), _response(429)]

        with self.assertRaises(TransientFetchError) as ctx:
            asyncio.run(self.source.fetch_contest(MEGASENA, 7))

        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(self.session.get.call_count, 3)
        self.assertEqual(self.sleep.delays, [1.0, 2.0])

    def test_timeouts_are_transient(self) -> None:
        self.session.get.side_effect = requests.Timeout("slow")
        with self.assertRaises(TransientFetchError):
            asyncio.run(self.source.fetch_latest(MEGASENA))
        self.assertEqual(self.session.get.call_count, 3)

    def test_not_found_is_not_retried(self) -> None:
        self.session.get.return_value = _response(404)

        with self.assertRaises(ContestNotFoundError):
            asyncio.run(self.source.fetch_contest(MEGASENA, 99999))

        self.assertEqual(self.session.get.call_count, 1)
        self.assertEqual(self.sleep.delays, [])

    def test_client_error_is_not_retried(self) -> None:
        self.session.get.return_value = _response(403)
        with self.assertRaises(FetchError) as ctx:
            asyncio.run(self.source.fetch_contest(MEGASENA, 1))
        self.assertNotIsInstance(ctx.exception, TransientFetchError)
        self.assertEqual(self.session.get.call_count, 1)

    def test_non_json_body_is_retried(self) -> None:
        self.session.get.side_effect = [
            _response(200, ValueError("Expecting value")),
            _response(200, make_payload(MEGASENA, 3)),
        ]
        record = asyncio.run(self.source.fetch_contest(MEGASENA, 3))
        self.assertEqual(record.contest, 3)
        self.assertEqual(self.sleep.delays, [1.0])

    def test_invalid_payload_is_not_retried(self) -> None:
        self.session.get.return_value = _response(
            200, make_payload(MEGASENA, 3, numbers=["1", "2", "3", "4", "5"])
        )
        with self.assertRaises(ValidationError):
            asyncio.run(self.source.fetch_contest(MEGASENA, 3))
        self.assertEqual(self.session.get.call_count, 1)

    def test_close_closes_session(self) -> None:
        asyncio.run(self.source.close())
        self.session.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
