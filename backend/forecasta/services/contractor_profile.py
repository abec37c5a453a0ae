from typing import Any

COMPLETENESS_WEIGHTS = {
    "primary_industry": 0.15,
    "service_types": 0.15,
    "service_area": 0.10,
    "customer_types": 0.08,
    "pricing_model": 0.07,
    "crew_size": 0.05,
    "roles": 0.08,
    "competitors": 0.10,
    "lead_sources": 0.07,
    "kpis": 0.10,
    "peak_seasons": 0.03,
    "photos": 0.02,
}


def service_area_label(profile: dict[str, Any]) -> str:
    area = profile.get("service_area")
    if isinstance(area, dict):
        cities = area.get("cities") or []
        return ", ".join(str(c) for c in cities) or str(area.get("zip") or "")
    return str(area or "")


def validate_profile(profile: dict[str, Any]) -> dict[str, Any]:
    errors: list[str] = []
    warnings: list[str] = []
    missing: list[str] = []

    if not profile.get("primary_industry"):
        errors.append("Primary industry is required")
        missing.append("primary_industry")
    if not profile.get("service_types"):
        errors.append("At least one service type is required")
        missing.append("service_types")

    area = profile.get("service_area")
    if not area:
        errors.append("Service area is required")
        missing.append("service_area")
    elif isinstance(area, dict):
        if not area.get("cities"):
            warnings.append("No cities specified in service area")
        if not area.get("radius_miles"):
            warnings.append("Service radius not specified")

    if not profile.get("customer_types"):
        warnings.append("Customer types not specified (residential/commercial/etc)")
        missing.append("customer_types")
    if not profile.get("pricing_model"):
        warnings.append("Pricing model not specified")
        missing.append("pricing_model")
    if not profile.get("contact_email") and not profile.get("contact_phone"):
        warnings.append("No contact email or phone; alerts will be in-app only")

    return {"valid": not errors, "errors": errors, "warnings": warnings, "missing_fields": missing}


def profile_completeness(profile: dict[str, Any]) -> float:
    score = sum(w for field, w in COMPLETENESS_WEIGHTS.items() if profile.get(field))
    return round(min(1.0, score), 2)


def suggest_next_steps(profile: dict[str, Any]) -> list[str]:
    kpis = profile.get("kpis") or {}
    suggestions = []
    if not kpis.get("leads_per_week"):
        suggestions.append("Add typical leads per week to enable lead forecasting")
    if not kpis.get("close_rate"):
        suggestions.append("Add close rate to calculate revenue projections")
    if not kpis.get("avg_ticket"):
        suggestions.append("Add average ticket size for revenue analysis")
    if not profile.get("competitors"):
        suggestions.append("Add 3-5 known competitors for competitive intelligence")
    if not profile.get("photos"):
        suggestions.append("Upload job photos to enable quality control analysis")
    if not profile.get("roles"):
        suggestions.append("Add crew roles to get hiring recommendations")
    return suggestions[:3]
