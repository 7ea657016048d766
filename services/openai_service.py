# services/openai_service.py
import openai
import os
import json
from typing import Dict, Any, Optional

from models.schemas import MealAnalysis, UserProfile

# Returned when the model answers with something that is not JSON
PARSE_FALLBACK = {
    'en': MealAnalysis(
        reason="Could not analyze the meal properly",
        analysis="Analysis failed due to parsing error",
        personalized_tips="Unable to provide personalized recommendations"
    ),
    'hi': MealAnalysis(
        reason="भोजन का विश्लेषण करने में असमर्थ",
        analysis="पार्सिंग त्रुटि के कारण विश्लेषण विफल रहा",
        personalized_tips="व्यक्तिगत सिफारिशें प्रदान करने में असमर्थ"
    ),
}

# Returned when the call itself fails
CALL_FALLBACK = {
    'en': MealAnalysis(
        reason="Analysis failed",
        analysis="Could not analyze the image",
        personalized_tips="Unable to provide personalized recommendations"
    ),
    'hi': MealAnalysis(
        reason="विश्लेषण विफल रहा",
        analysis="छवि का विश्लेषण नहीं किया जा सका",
        personalized_tips="व्यक्तिगत सिफारिशें प्रदान करने में असमर्थ"
    ),
}


def strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith('```json'):
        content = content[7:]
    elif content.startswith('```'):
        content = content[3:]
    if content.endswith('```'):
        content = content[:-3]
    return content.strip()


def parse_analysis(content: str) -> MealAnalysis:
    """Turn the model's JSON answer into a MealAnalysis; raises json.JSONDecodeError"""
    data = json.loads(strip_code_fences(content))
    if not isinstance(data, dict):
        raise json.JSONDecodeError("Expected a JSON object", content, 0)

    try:
        calories = int(float(data.get("calories") or 0))
    except (TypeError, ValueError):
        calories = 0

    return MealAnalysis(
        calories=max(calories, 0),
        is_recommended=bool(data.get("is_recommended", False)),
        reason=str(data.get("reason") or ""),
        analysis=str(data.get("analysis") or ""),
        personalized_tips=str(data.get("personalized_tips") or "")
    )


def build_prompt(description: str, profile: Optional[UserProfile], lang: str) -> str:
    if lang == 'hi':
        prompt = f"""इस भोजन की छवि का विश्लेषण करें और निम्नलिखित उपयोगकर्ता द्वारा प्रदान किए गए विवरण का भी विश्लेषण करें: "{description}".
यदि विवरण कैलोरी गणना के लिए प्रासंगिक और मान्य हैं, तो सटीकता में सुधार के लिए उनका उपयोग करें।
यदि विवरण अमान्य या अप्रासंगिक हैं, तो उन्हें नजरअंदाज करें और गणना को केवल छवि पर आधारित करें।
यह भी निर्धारित करें कि क्या यह भोजन मधुमेह वाले व्यक्ति के लिए उपयुक्त होगा, इस आधार पर:
1. कुल कैलोरी
2. चीनी सामग्री
3. कार्बोहाइड्रेट सामग्री
4. समग्र पोषण संतुलन"""
        if profile and profile.onboarded:
            prompt += f"""

कृपया यह भी ध्यान रखें कि इस उपयोगकर्ता के पास:
- {profile.condition_type} मधुमेह है
- दैनिक कैलोरी सीमा {profile.daily_calorie_limit} kcal है
- इनकी आहार संबंधी प्राथमिकताएँ हैं: {profile.dietary_preference or 'कोई निर्दिष्ट नहीं'}"""
        prompt += """

अपना उत्तर इस सटीक प्रारूप में प्रदान करें (कोई मार्कडाउन नहीं, कोई कोड ब्लॉक नहीं):
{
    "calories": संख्या,
    "is_recommended": बूलियन,
    "reason": "मधुमेह रोगियों के लिए यह अनुशंसित है या नहीं, इसका कारण बताता हुआ वाक्य",
    "analysis": "भोजन का विस्तृत विश्लेषण",
    "personalized_tips": "उपयोगकर्ता के प्रोफाइल के आधार पर व्यक्तिगत आहार संबंधी सलाह"
}

कृपया अपने सभी उत्तर हिंदी में प्रदान करें, केवल "calories" और "is_recommended" जैसे JSON कुंजी नाम अंग्रेजी में रखें।"""
        return prompt

    prompt = f"""Analyze this food image and the following user-provided details: "{description}".
If the details are relevant and valid for calorie calculation, use them to improve the accuracy.
If the details are invalid or irrelevant, ignore them and base the calculation on the image only.
Also determine if this meal would be suitable for a diabetic person based on:
1. Total calories
2. Sugar content
3. Carbohydrate content
4. Overall nutritional balance"""
    if profile and profile.onboarded:
        prompt += f"""

Please also consider that this user:
- Has {profile.condition_type} diabetes
- Has a daily calorie limit of {profile.daily_calorie_limit} kcal
- Has these dietary preferences: {profile.dietary_preference or 'None specified'}"""
    prompt += """

Provide your response in this exact format (no markdown, no code blocks):
{
    "calories": number,
    "is_recommended": boolean,
    "reason": "string explaining why this is recommended or not for diabetics",
    "analysis": "detailed analysis of the meal",
    "personalized_tips": "personalized dietary advice based on the user's profile"
}"""
    return prompt


class OpenAIService:
    def __init__(self):
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY must be set in environment variables")

        self.client = openai.AsyncOpenAI(api_key=api_key)
        self.model = os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini")
        print("✅ OpenAI service initialized")

    async def analyze_food_image(
        self,
        image_base64: str,
        description: str,
        profile: Optional[UserProfile] = None,
        lang: str = 'en'
    ) -> MealAnalysis:
        """Estimate calories and diabetic suitability of a food photo"""
        lang = 'hi' if lang == 'hi' else 'en'
        content = ""
        try:
            print(f"🔍 Analyzing food image ({len(image_base64)} base64 chars)")

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_prompt(description, profile, lang)},
                        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"}}
                    ]
                }],
                temperature=0.3,
                max_tokens=800
            )

            content = response.choices[0].message.content or ""
            analysis = parse_analysis(content)

            print(f"✅ Food analysis complete: {analysis.calories} calories, recommended={analysis.is_recommended}")
            return analysis

        except json.JSONDecodeError as e:
            print(f"❌ JSON parsing error: {e}")
            print(f"   Raw content: {content}")
            return PARSE_FALLBACK[lang].model_copy()
        except Exception as e:
            print(f"❌ Error analyzing food image: {e}")
            import traceback
            traceback.print_exc()
            return CALL_FALLBACK[lang].model_copy()


def init_openai_service() -> OpenAIService:
    """Build the OpenAI service once at startup"""
    return OpenAIService()
