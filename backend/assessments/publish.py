"""
Assessment publish orchestrator.

Intent:
    Materialize an authoring request in one Metro environment: plan SQL,
    execute it, render and upload the four XML documents and patch their URLs
    back into `questionnaire_translations`, all inside one transaction.

Behavior:
    - The environment (TEST/PRODUCTION) is an explicit argument; it selects the
      transaction factory and the object-store prefix (`test`/`production`).
    - Uploads happen strictly after all planned statements ran; URL patches
      strictly after all uploads.
    - Any failure after the first upload deletes the keys uploaded by this
      publish (best-effort) and re-raises, so the transaction rolls back.
    - When no object store is configured the XML phase is skipped and logged.

Returns:
    `{"questionnaireId", "published", "timings"}` with phase timings, the five
    slowest statements and counters.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from backend.assessments.models import AssessmentBuildRequest, validate_assessment_request
from backend.assessments.planner import AssessmentPlanner
from backend.assessments.xml_render import render_all
from backend.metro.connection import MetroTargets, PublishEnvironment
from backend.metro.lookup import MetroLookup
from backend.storage.keys import make_assessment_xml_key
from backend.storage.ports import ObjectStore


logger = logging.getLogger("builder.assessments.publish")


def _ms_since(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class QuestionnairePublishService:
    def __init__(
        self,
        targets: MetroTargets,
        object_store: Optional[ObjectStore] = None,
        *,
        lookup_factory: Callable[[Any], MetroLookup] = MetroLookup,
    ) -> None:
        self._targets = targets
        self._store = object_store
        self._lookup_factory = lookup_factory

    def publish(self, request: AssessmentBuildRequest, environment: PublishEnvironment = PublishEnvironment.TEST) -> Dict[str, Any]:
        validate_assessment_request(request)
        target = self._targets.resolve(environment)
        if environment == PublishEnvironment.PRODUCTION:
            logger.warning("Publishing questionnaire %r to PRODUCTION", request.assessment_name)
        else:
            logger.info("Publishing questionnaire %r to %s", request.assessment_name, target.label)

        total_started = time.perf_counter()
        timings: Dict[str, int] = {}
        with target.transaction() as conn:
            lookup = self._lookup_factory(conn)

            started = time.perf_counter()
            plan = AssessmentPlanner(lookup).plan(request)
            timings["generatePreview_ms"] = _ms_since(started)
            timings["sqlStatementCount"] = len(plan.sql_statements)
            questionnaire_id = plan.summary.questionnaire_id
            logger.info(
                "[%s] plan ready in %sms (%s statements, questionnaire %s)",
                target.label, timings["generatePreview_ms"], len(plan.sql_statements), questionnaire_id,
            )
            for warning in plan.warnings:
                logger.info("[%s] plan warning: %s", target.label, warning)

            started = time.perf_counter()
            per_statement = lookup.execute_sql_statements(plan.sql_statements)
            timings["executeSql_ms"] = _ms_since(started)
            slowest = sorted(per_statement, key=lambda entry: entry["ms"], reverse=True)[:5]
            for rank, entry in enumerate(slowest, start=1):
                timings[f"slow{rank}_ms"] = int(entry["ms"])
                timings[f"slow{rank}_idx"] = int(entry["i"])
            logger.info("[%s] executed statements in %sms", target.label, timings["executeSql_ms"])

            if self._store is not None:
                started = time.perf_counter()
                self._upload_xml_and_patch_urls(self._store, request, questionnaire_id, lookup, target.storage_prefix)
                timings["xmlAndS3Upload_ms"] = _ms_since(started)
                logger.info("[%s] XML upload took %sms", target.label, timings["xmlAndS3Upload_ms"])
            else:
                logger.info("[%s] object store disabled; skipping XML upload for questionnaire %s", target.label, questionnaire_id)

            timings["total_ms"] = _ms_since(total_started)
            timings["questionnaireId"] = questionnaire_id
            timings["groupCount"] = len(request.group_ids)

        logger.info("[%s] questionnaire %s published (total %sms)", target.label, questionnaire_id, timings["total_ms"])
        return {"questionnaireId": questionnaire_id, "published": True, "timings": timings}

    def _upload_xml_and_patch_urls(self, store: ObjectStore, request: AssessmentBuildRequest, questionnaire_id: int, lookup: MetroLookup, prefix: str) -> None:
        rendered = render_all(request)
        if rendered.warnings:
            logger.warning("XML warnings for questionnaire %s: %s", questionnaire_id, rendered.warnings)

        documents = (
            ("nl", "questionnaire", rendered.questionnaire_nl),
            ("nl", "report", rendered.report_nl),
            ("en", "questionnaire", rendered.questionnaire_en),
            ("en", "report", rendered.report_en),
        )
        uploaded: List[str] = []
        urls: Dict[tuple, str] = {}
        try:
            for lang, xml_type, content in documents:
                key = make_assessment_xml_key(
                    prefix=prefix, lang=lang, xml_type=xml_type, assessment_name=request.assessment_name
                )
                store.put_text(key, content)
                uploaded.append(key)
                urls[(lang, xml_type)] = store.url_for(key)
            for lang in ("nl", "en"):
                lookup.update_translation_urls(
                    questionnaire_id, lang, urls[(lang, "questionnaire")], urls[(lang, "report")]
                )
        except Exception:
            logger.exception(
                "XML upload or URL patch failed for questionnaire %s; deleting %s uploaded objects",
                questionnaire_id, len(uploaded),
            )
            store.delete_many(uploaded)
            raise


__all__ = ["QuestionnairePublishService"]
