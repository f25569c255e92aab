"""Static role-keyed question bank and domain keywords for local interviews."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from interview_session.models import Question

GENERIC_QUESTION = Question(id="dft1", text="Tell me about your most recent work.")
CANNED_FOLLOWUP = "What challenges did you face on that project and how did you solve them?"


def _bank(*entries: Tuple[str, str]) -> Tuple[Question, ...]:
    return tuple(Question(id=qid, text=text) for qid, text in entries)


ROLE_QUESTIONS: Dict[str, Tuple[Question, ...]] = {
    "Frontend Engineer": _bank(
        ("f1", "Tell me about a recent frontend project you built. What were the main challenges?"),
        ("f2", "How do you optimize web performance? Provide concrete techniques you used."),
        ("f3", "Describe how you approach component design and state management."),
        ("f4", "How do you ensure accessibility in your apps?"),
        ("f5", "Explain a time you refactored a large component tree. What was your strategy?"),
        ("f6", "What bundling or build-time optimizations have you applied?"),
        ("f7", "How do you debug tricky layout or CSS issues?"),
        ("f8", "Describe how you write and maintain UI tests."),
        ("f9", "How do you collaborate with designers and product teams?"),
        ("f10", "Talk about a time you improved perceived performance for users."),
        ("f11", "What are your go-to patterns for state synchronization with a backend?"),
        ("f12", "How do you keep up with frontend architecture and tooling changes?"),
    ),
    "Backend Engineer": _bank(
        ("b1", "Describe a backend system you designed for scale. What tradeoffs did you make?"),
        ("b2", "How do you ensure data integrity across distributed services?"),
        ("b3", "Explain how you would debug a performance hotspot in an API."),
        ("b4", "How do you approach schema design for changing requirements?"),
        ("b5", "Describe your caching strategy and invalidation approach."),
        ("b6", "What monitoring and alerting do you rely on for backend services?"),
        ("b7", "How do you design APIs for backward compatibility?"),
        ("b8", "Explain a complex database migration you executed."),
        ("b9", "How do you test and validate durability guarantees?"),
        ("b10", "Describe a time you reduced latency in a critical path."),
        ("b11", "What techniques do you use for secure authentication and authorization?"),
        ("b12", "How do you reason about cost and operational overhead?"),
    ),
    "Fullstack Engineer": _bank(
        ("fs1", "Describe a full-stack feature you delivered end-to-end."),
        ("fs2", "How do you coordinate API design with frontend UX?"),
        ("fs3", "Which testing strategies do you rely on across the stack?"),
        ("fs4", "How do you decide where logic belongs: client or server?"),
        ("fs5", "Describe a time you optimized end-to-end performance."),
        ("fs6", "How do you manage deployments and rollbacks for fullstack changes?"),
        ("fs7", "How do you design for offline-first or flaky networks?"),
        ("fs8", "Explain a CI/CD pipeline you built for full-stack delivery."),
        ("fs9", "How do you handle schema evolution and teams coordination?"),
        ("fs10", "Talk about observability coverage you rely on across the stack."),
        ("fs11", "What security considerations do you build into full-stack features?"),
        ("fs12", "How do you split and manage technical debt across frontend/backend?"),
    ),
    "Data Scientist": _bank(
        ("d1", "Walk me through a data project where you moved from raw data to business impact."),
        ("d2", "How do you validate model performance and guard against data leakage?"),
        ("d3", "Describe a time you improved model interpretability."),
        ("d4", "How do you handle feature engineering at scale?"),
        ("d5", "Explain a time your model failed in production and how you responded."),
        ("d6", "How do you measure attribution and uplift?"),
        ("d7", "Describe your approach to data quality and validation."),
        ("d8", "How do you balance performance with model explainability?"),
        ("d9", "What tooling and pipelines do you use for reproducible experiments?"),
        ("d10", "How do you collaborate with engineers to productionize models?"),
        ("d11", "Describe a creative feature you engineered that improved results."),
        ("d12", "How do you incorporate business metrics into model objectives?"),
    ),
    "Machine Learning Engineer": _bank(
        ("m1", "Describe how you productionize a machine learning model."),
        ("m2", "What monitoring would you add for a deployed model?"),
        ("m3", "Explain a technical challenge you faced implementing an ML pipeline."),
        ("m4", "How do you manage model versioning and rollbacks?"),
        ("m5", "Describe your approach to feature stores and online features."),
        ("m6", "How do you handle inference latency and scaling?"),
        ("m7", "Explain batching vs streaming inference tradeoffs."),
        ("m8", "How do you test model correctness end-to-end?"),
        ("m9", "Describe model security considerations (data leakage, info exposure)."),
        ("m10", "How do you automate retraining and drift detection?"),
        ("m11", "Talk about a production incident and your remediation."),
        ("m12", "How do you ensure reproducibility and experiment tracking?"),
    ),
    "DevOps Engineer": _bank(
        ("dv1", "How do you design CI/CD for safety and speed?"),
        ("dv2", "Explain a time you improved system reliability."),
        ("dv3", "Which observability signals do you prioritize and why?"),
        ("dv4", "How do you design capacity planning and autoscaling?"),
        ("dv5", "Describe a major incident you handled and the postmortem."),
        ("dv6", "How do you approach secrets management and rotation?"),
        ("dv7", "What are your deployment strategies for zero-downtime?"),
        ("dv8", "Explain infrastructure-as-code practices you follow."),
        ("dv9", "How do you secure the CI/CD pipeline?"),
        ("dv10", "What SLAs and SLOs would you set for a critical service?"),
        ("dv11", "How do you test disaster recovery plans?"),
        ("dv12", "Describe how you reduce mean time to recovery (MTTR)."),
    ),
    "Mobile Engineer": _bank(
        ("mm1", "Describe mobile architecture choices you made for performance."),
        ("mm2", "How do you test on devices and across OS versions?"),
        ("mm3", "Explain a tricky memory or layout bug you solved."),
        ("mm4", "How do you manage app size and startup time?"),
        ("mm5", "Describe offline and sync strategies you implemented."),
        ("mm6", "How do you approach cross-platform tradeoffs?"),
        ("mm7", "What tooling do you use for profiling and diagnostics?"),
        ("mm8", "Explain a challenging UX constraint you solved for mobile."),
        ("mm9", "How do you handle long-running background work?"),
        ("mm10", "How do you secure sensitive data on-device?"),
        ("mm11", "Describe your testing matrix for versions and devices."),
        ("mm12", "How do you monitor crashes and prioritize fixes?"),
    ),
    "QA Engineer": _bank(
        ("q1", "Describe an automation test you built and its impact."),
        ("q2", "How do you approach testing for flaky distributed systems?"),
        ("q3", "What is your approach to balancing manual and automated testing?"),
        ("q4", "How do you design test data and environments?"),
        ("q5", "Explain how you measure testing effectiveness."),
        ("q6", "How do you integrate tests into CI without blocking delivery?"),
        ("q7", "Describe a time you reduced escaped defects."),
        ("q8", "How do you approach exploratory testing and bug hunts?"),
        ("q9", "What tooling do you use for observability of tests?"),
        ("q10", "How do you coach engineers to write testable code?"),
        ("q11", "How do you prioritize test coverage vs development speed?"),
        ("q12", "Describe a testing strategy for an API-first product."),
    ),
    "Security Engineer": _bank(
        ("s1", "Describe a security incident you handled and how you mitigated it."),
        ("s2", "What secure coding practices do you enforce in a team?"),
        ("s3", "How would you approach threat modeling for a new service?"),
        ("s4", "How do you prioritize vulnerabilities and remediation?"),
        ("s5", "Describe how you handle secrets and key rotation."),
        ("s6", "What are common misconfigurations you watch for in cloud environments?"),
        ("s7", "How do you run red-team or adversarial testing?"),
        ("s8", "Explain a time you improved incident detection."),
        ("s9", "How do you secure CI/CD and artifact pipelines?"),
        ("s10", "What threat intel sources do you integrate into work?"),
        ("s11", "How do you measure security program effectiveness?"),
        ("s12", "Describe your approach to privacy and data protection."),
    ),
    "Product Manager": _bank(
        ("p1", "How do you prioritize features when resources are limited?"),
        ("p2", "Describe a time you turned ambiguous requirements into clear milestones."),
        ("p3", "How do you measure product success after launch?"),
        ("p4", "How do you collect and synthesize user feedback?"),
        ("p5", "Describe a tradeoff you made between speed and polish."),
        ("p6", "How do you align stakeholders across teams?"),
        ("p7", "Explain a product experiment you ran and the outcome."),
        ("p8", "How do you use metrics to influence roadmap decisions?"),
        ("p9", "Describe how you onboard new users to a product feature."),
        ("p10", "How do you think about pricing and monetization?"),
        ("p11", "How do you handle competing customer segments?"),
        ("p12", "Describe your approach to technical debt vs feature investment."),
    ),
}

ROLE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "Frontend Engineer": ("react", "vue", "angular", "javascript", "css", "html", "accessibility", "performance", "webpack", "vite"),
    "Backend Engineer": ("api", "database", "sql", "nosql", "caching", "latency", "scalability", "node", "go", "java"),
    "Fullstack Engineer": ("api", "frontend", "backend", "deployment", "react", "node", "graphql", "rest"),
    "Data Scientist": ("model", "analysis", "feature", "pandas", "numpy", "ml", "metrics", "a/b", "data"),
    "Machine Learning Engineer": ("model", "inference", "feature store", "latency", "drift", "tracking", "mlflow"),
    "DevOps Engineer": ("ci", "cd", "kubernetes", "docker", "monitoring", "slo", "sla", "alerts"),
    "Mobile Engineer": ("android", "ios", "swift", "kotlin", "layout", "memory", "performance"),
    "QA Engineer": ("test", "automation", "flaky", "coverage", "ci", "selenium", "cypress"),
    "Security Engineer": ("vulnerability", "threat", "sec", "csrf", "xss", "encryption", "auth", "oauth"),
    "Product Manager": ("metric", "user", "roadmap", "stakeholder", "experiment", "growth"),
}

# Used when the resume is empty; keyed by a substring of the lower-cased role.
ROLE_CATEGORY_DEFAULTS: Dict[str, Tuple[str, ...]] = {
    "frontend": (
        "Describe a challenging UI you built and how you handled responsiveness and accessibility.",
        "How do you optimize page load performance and rendering in modern browsers?",
    ),
    "backend": (
        "Describe a scalable backend system you designed and the trade-offs you made.",
        "How do you approach data modeling and performance for high-throughput services?",
    ),
    "data": (
        "Tell me about a data pipeline you built and how you handled data quality.",
        "How do you validate and monitor model performance or data drift?",
    ),
    "devops": (
        "Describe how you would design CI/CD for a microservices platform.",
        "How do you monitor and respond to production incidents?",
    ),
    "product": (
        "How do you gather requirements and measure product success?",
        "Tell me about a time you prioritized competing stakeholder requests.",
    ),
}


def _lookup(table: Dict[str, Tuple], role: str) -> Optional[Tuple]:
    if role in table:
        return table[role]
    normalized = (role or "").strip().lower()
    for key, value in table.items():
        if key.lower() == normalized:
            return value
    return None


def known_roles() -> List[str]:
    return list(ROLE_QUESTIONS)


def questions_for(role: str) -> Tuple[Question, ...]:
    """Ordered fallback questions for ``role``; a single generic question if unknown."""

    bank = _lookup(ROLE_QUESTIONS, role)
    if bank is None:
        return (GENERIC_QUESTION,)
    return bank


def keywords_for(role: str) -> Tuple[str, ...]:
    """Domain keywords for ``role``; empty when the role is unknown."""

    return _lookup(ROLE_KEYWORDS, role) or ()


def category_defaults(role: str) -> Sequence[str]:
    role_key = (role or "").lower()
    for category, questions in ROLE_CATEGORY_DEFAULTS.items():
        if category in role_key:
            return list(questions)
    return []


__all__ = [
    "CANNED_FOLLOWUP",
    "GENERIC_QUESTION",
    "ROLE_CATEGORY_DEFAULTS",
    "ROLE_KEYWORDS",
    "ROLE_QUESTIONS",
    "category_defaults",
    "keywords_for",
    "known_roles",
    "questions_for",
]
