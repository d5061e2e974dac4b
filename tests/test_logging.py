import json
import logging

from ad_crawler.logging import adlog, jlog, logging_context, pagelog


def _payloads(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "crawler"]


def test_jlog_emits_json_with_scoped_fields(caplog):
    caplog.set_level(logging.INFO, logger="crawler")
    with logging_context(crawl_id=3):
        with logging_context(crawl_index=1, skipped=None):
            jlog("info", event="inner")
        jlog("warning", event="outer")
    jlog("info", event="after")

    inner, outer, after = _payloads(caplog)
    assert inner["crawl_id"] == 3 and inner["crawl_index"] == 1
    assert "skipped" not in inner
    assert outer["crawl_id"] == 3 and "crawl_index" not in outer
    assert "crawl_id" not in after
    assert "ts" in inner


def test_page_and_ad_helpers(caplog):
    caplog.set_level(logging.INFO, logger="crawler")
    pagelog("page_loaded", url="http://a.test/")
    adlog("ad_clicked", ad_id=4, page_url="http://a.test/", level="warning", error=ValueError("boom"))

    page, ad = _payloads(caplog)
    assert page["event"] == "page_loaded"
    assert page["url"] == "http://a.test/"
    assert ad["ad_id"] == 4
    assert ad["error"] == "ValueError: boom"
    assert caplog.records[-1].levelno == logging.WARNING
