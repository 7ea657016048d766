# api/reports.py
from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_blood_sugar_service, get_summary_service
from services.analytics_service import format_trends_message
from services.summary_service import calculate_averages, generate_insights, format_summary_message

router = APIRouter()

SUMMARY_PERIODS = ('daily', 'weekly', 'monthly')


@router.get("/{phone}/blood-sugar/trends")
async def get_blood_sugar_trends(
    phone: str,
    days: int = Query(7, ge=1, le=365),
    blood_sugar=Depends(get_blood_sugar_service)
):
    """Trend statistics over the last `days` days"""
    try:
        print(f"🔍 Getting blood sugar trends for {phone} ({days} days)")
        trends = await blood_sugar.get_trends(phone, days)
        return {
            "success": True,
            "trends": trends.model_dump(mode="json"),
            "message": format_trends_message(trends)
        }
    except Exception as e:
        print(f"❌ Error getting blood sugar trends: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{phone}/blood-sugar/meal-correlation")
async def get_meal_correlation(
    phone: str,
    days: int = Query(7, ge=1, le=365),
    blood_sugar=Depends(get_blood_sugar_service)
):
    """Meals in the window with the post-meal readings taken within two hours"""
    try:
        print(f"🔍 Correlating meals with blood sugar for {phone} ({days} days)")
        correlated = await blood_sugar.correlate_meals(phone, days)
        return {
            "success": True,
            "meals": [item.model_dump(mode="json") for item in correlated],
            "count": len(correlated)
        }
    except Exception as e:
        print(f"❌ Error correlating meals: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{phone}/summary/{period}")
async def get_summary(phone: str, period: str, summaries=Depends(get_summary_service)):
    if period not in SUMMARY_PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period. Use one of: {', '.join(SUMMARY_PERIODS)}")

    try:
        summary = await summaries.get_summary(phone, period)
    except Exception as e:
        print(f"❌ Error getting {period} summary: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    response = {"success": True, "period": period, "message": format_summary_message(summary, period)}
    if period == 'daily':
        response["summary"] = summary.model_dump(mode="json") if summary else None
    else:
        stats = calculate_averages(summary)
        response["days"] = [rollup.model_dump(mode="json") for rollup in summary]
        response["stats"] = stats.model_dump()
        response["insights"] = generate_insights(stats) if summary else []
    return response
