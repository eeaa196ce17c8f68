"""
Therapeutic prompt templates and generation.

This module contains all the prompt templates used throughout the pipeline,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import Dict, Any, List, Optional
import json

from ..config import MODALITY_WEIGHTS
from .models import FACIAL_EMOTIONS, VOICE_EMOTIONS, TEXT_EMOTIONS, INTENT_CATEGORIES


def _pct(weight: float) -> str:
    return f"{int(round(weight * 100))}%"


class MitrPrompts:
    """Collection of all pipeline prompts."""

    @staticmethod
    def facial_emotion() -> str:
        """Prompt for facial emotion analysis; the image travels as an inline part."""
        return f"""
Analyze the facial expression in the attached image for emotional content.

Consider these emotions: {", ".join(FACIAL_EMOTIONS)}.

Provide:
1. Primary emotion detected
2. Confidence score (0-1)
3. Scores for all relevant emotions (0-1)
4. Arousal level (0=calm, 1=highly aroused)
5. Valence level (0=negative, 1=positive)

Focus on micro-expressions, eye contact, facial muscle tension, and overall expression quality.
        """.strip()

    @staticmethod
    def voice_emotion(audio_features: Dict[str, Any]) -> str:
        """Prompt for voice emotion analysis from extracted audio features."""
        fmt = PromptFormatter.format_value
        return f"""
Analyze voice emotional content based on these audio features:

Pitch: {fmt(audio_features.get("pitch"))} Hz (average fundamental frequency)
Energy: {fmt(audio_features.get("energy"))} (voice energy level)
Spectral Centroid: {fmt(audio_features.get("spectralCentroid"))} Hz (brightness)
MFCC: {fmt(audio_features.get("mfcc"))} (mel-frequency cepstral coefficients)
Duration: {fmt(audio_features.get("duration"))} seconds

Consider these emotions: {", ".join(VOICE_EMOTIONS)}.

Analyze:
- Pitch variations (high pitch = excitement/stress, low pitch = sadness/calm)
- Energy levels (high energy = excitement/anger, low energy = sadness/fatigue)
- Spectral characteristics (brightness indicates emotional arousal)
- Speaking rate and rhythm patterns

Provide:
1. Primary emotion detected
2. Confidence score (0-1)
3. Scores for all relevant emotions (0-1)
4. Stress level (0=relaxed, 1=highly stressed)
5. Energy level (0=low energy, 1=high energy)
        """.strip()

    @staticmethod
    def text_emotion(text: str, conversation_history: Optional[str] = None) -> str:
        """Prompt for text emotion and sentiment analysis."""
        history = f"\nConversation Context: {conversation_history}\n" if conversation_history else ""
        return f"""
Analyze the emotional content and sentiment of this text:

Text: {json.dumps(text, ensure_ascii=False)}
{history}
Consider these emotions: {", ".join(TEXT_EMOTIONS)}.

Analyze:
- Word choice and emotional language
- Sentence structure and tone
- Context from conversation history
- Implicit emotional indicators
- Therapeutic relevance (signs of distress, coping, progress)

Provide:
1. Primary emotion detected
2. Confidence score (0-1)
3. Scores for all relevant emotions (0-1)
4. Sentiment score (-1=very negative, 0=neutral, 1=very positive)
5. Emotional intensity (0=mild, 1=very intense)
        """.strip()

    @staticmethod
    def multimodal_fusion(facial: Optional[str], voice: Optional[str], text: Optional[str]) -> str:
        """Prompt for fusing per-modality analyses into one record."""
        sections = []
        if facial:
            sections.append(f"Facial Analysis: {facial}")
        if voice:
            sections.append(f"Voice Analysis: {voice}")
        if text:
            sections.append(f"Text Analysis: {text}")
        analyses = "\n\n".join(sections)

        return f"""
Perform multimodal emotion fusion and therapeutic assessment:

{analyses}

As a therapeutic AI, fuse these modalities using attention-weighted fusion:
1. Identify the most reliable modality based on confidence scores
2. Look for emotional congruence or incongruence across modalities; when they conflict, prefer the higher-confidence modality
3. Weight facial expressions ({_pct(MODALITY_WEIGHTS["facial"])}), voice tone ({_pct(MODALITY_WEIGHTS["voice"])}), text content ({_pct(MODALITY_WEIGHTS["text"])}), renormalized over the modalities present
4. Consider therapeutic context and emotional regulation patterns

Use only these emotion labels: {", ".join(TEXT_EMOTIONS)}.

Provide:
1. Primary fused emotion
2. Overall confidence score
3. Fused emotion scores for all detected emotions
4. Overall arousal level (0-1)
5. Overall valence level (0-1)
6. Distress level assessment (0=no distress, 1=severe distress), higher when negative-valence signals converge
7. 3-5 therapeutic recommendations
8. Avatar expression recommendation (empathetic, supportive, concerned, encouraging, calm, etc.) with intensity and duration

Focus on therapeutic value and emotional support needs.
        """.strip()

    @staticmethod
    def intent_classification(message: str, conversation_context: Optional[str] = None) -> str:
        """Prompt for therapeutic intent classification."""
        context = f"\nConversation Context:\n{conversation_context}\n" if conversation_context else ""
        categories = "\n".join(f"- {name}: {desc}" for name, desc in INTENT_CATEGORIES.items())
        return f"""
Classify the therapeutic intent of this user message:

Message: {json.dumps(message, ensure_ascii=False)}
{context}
Therapeutic Intent Categories:
{categories}

Provide:
1. Primary intent (most likely)
2. Secondary intents (other possible intents)
3. Confidence score (0-1)
        """.strip()

    @staticmethod
    def context_analysis(
        current_message: str,
        history_lines: List[str],
        profile: Optional[Dict[str, Any]],
        emotional_context: Optional[Dict[str, Any]],
        health_context: Optional[Dict[str, Any]],
    ) -> str:
        """Prompt for composing therapeutic context guidance."""
        fmt = PromptFormatter.format_value
        blocks = [f"Current Message: {json.dumps(current_message, ensure_ascii=False)}"]

        if history_lines:
            blocks.append("Conversation History:\n" + "\n".join(history_lines))

        if profile:
            lines = []
            if profile.get("therapeuticGoals"):
                lines.append(f"Goals: {fmt(profile['therapeuticGoals'])}")
            if profile.get("triggers"):
                lines.append(f"Triggers: {fmt(profile['triggers'])}")
            if profile.get("copingStrategies"):
                lines.append(f"Coping Strategies: {fmt(profile['copingStrategies'])}")
            if profile.get("preferences"):
                lines.append(f"Preferences: {fmt(profile['preferences'])}")
            if profile.get("sessionHistory"):
                lines.append(f"Previous Sessions: {fmt(profile['sessionHistory'])}")
            if lines:
                blocks.append("User Profile:\n" + "\n".join(lines))

        if emotional_context:
            blocks.append(
                "Emotional Context:\n"
                f"- Current Emotion: {fmt(emotional_context.get('currentEmotion'))}\n"
                f"- Intensity: {fmt(emotional_context.get('emotionIntensity'))}\n"
                f"- Trend: {fmt(emotional_context.get('emotionTrend'))}\n"
                f"- Distress Level: {fmt(emotional_context.get('distressLevel'))}"
            )

        if health_context:
            blocks.append(
                "Health Context:\n"
                f"- Wellness Score: {fmt(health_context.get('wellnessScore'))}\n"
                f"- Stress Level: {fmt(health_context.get('stressLevel'))}\n"
                f"- Sleep Quality: {fmt(health_context.get('sleepQuality'))}\n"
                f"- Activity Level: {fmt(health_context.get('activityLevel'))}"
            )

        context = "\n\n".join(blocks)
        return f"""
Analyze conversation context and provide therapeutic guidance:

{context}

As a therapeutic AI, analyze this context and provide:

1. Relevant Context Extraction:
   - Identify most relevant previous conversations
   - Extract key themes and patterns
   - Note emotional progression
   - Highlight therapeutic milestones

2. Therapeutic Intent Classification:
   - Primary intent of current message
   - Secondary possible intents
   - Confidence in classification

3. Response Strategy:
   - Appropriate therapeutic approach
   - Recommended tone and style
   - Specific techniques to use
   - Things to avoid

4. Contextual Factors:
   - Current emotional state assessment
   - Urgency level (low, medium, high, critical)
   - Session phase (opening, exploration, intervention, closure)
   - Therapeutic alliance strength (0-100)

5. Knowledge Base Integration:
   - Relevant therapeutic concepts
   - Applicable techniques and interventions
   - Evidence-based approaches

6. Adaptive Prompt Generation:
   - Create a contextually-aware prompt for response generation
   - Include relevant history and therapeutic considerations
   - Specify approach and techniques to use

Focus on therapeutic effectiveness, safety, and building rapport.
        """.strip()

    @staticmethod
    def safety_assessment(
        user_message: str,
        emotion_data: str,
        health_data: Optional[str] = None,
        conversation_history: Optional[str] = None,
    ) -> str:
        """Prompt for the dedicated safety and risk assessment."""
        extra = ""
        if health_data:
            extra += f"\nHealth Data: {health_data}\n"
        if conversation_history:
            extra += f"\nRecent Conversation:\n{conversation_history}\n"
        return f"""
Assess safety and risk factors based on user data:

User Message: {json.dumps(user_message, ensure_ascii=False)}

Emotion Data: {emotion_data}
{extra}
Assess for:
1. Suicide risk indicators
2. Self-harm potential
3. Severe mental health crisis
4. Substance abuse concerns
5. Domestic violence indicators
6. Severe health emergencies
7. Psychotic symptoms
8. Severe depression or anxiety

Risk Levels:
- low: Normal therapeutic conversation
- medium: Elevated distress, monitor closely
- high: Significant risk factors present, immediate support needed
- critical: Imminent danger, emergency intervention required

Provide specific safety concerns and recommended actions.
        """.strip()

    @staticmethod
    def therapeutic_response(
        user_message: str,
        emotion_analysis: str,
        contextual_guidance: str,
        safety_factors: str,
        health_analysis: Optional[str] = None,
    ) -> str:
        """Main response-generation prompt."""
        health = f"\nHealth Analysis:\n{health_analysis}\n" if health_analysis else ""
        return f"""
You are Mitr AI, an advanced therapeutic AI companion. Generate a comprehensive therapeutic response based on multimodal analysis.

User Message: {json.dumps(user_message, ensure_ascii=False)}

Emotion Analysis:
{emotion_analysis}
{health}
Contextual Guidance:
{contextual_guidance}

Safety Factors:
{safety_factors}

As Mitr AI, provide:

1. Therapeutic Response:
   - Empathetic, warm, and supportive tone
   - Address the user's emotional state directly
   - Incorporate insights from all analysis modalities
   - Use evidence-based therapeutic techniques
   - Maintain appropriate boundaries
   - Show genuine care and understanding

2. Intervention Recommendations:
   - Immediate: Actions for the next few minutes/hours
   - Session: Techniques to explore in this conversation
   - Long-term: Strategies for ongoing development

3. Safety Assessment:
   - Risk level evaluation (low/medium/high/critical)
   - Specific safety concerns if any
   - Recommended safety actions
   - Whether follow-up is needed

Guidelines:
- Prioritize user safety above all else
- If the safety factors show high or critical risk, gently share crisis resources and encourage reaching out to someone now
- Be authentic and human-like in your responses
- Validate emotions while providing hope
- Use the user's name if known
- Reference previous conversations when relevant
- Adapt your language to the user's communication style
- If health data indicates concerning patterns, address them sensitively
- Always maintain therapeutic boundaries
- Encourage professional help when appropriate

Your response should feel like talking to a caring, knowledgeable friend who happens to be a skilled therapist.
        """.strip()

    @staticmethod
    def fast_therapist(user_message: str, conversation_history: Optional[str] = None) -> str:
        """Single-call prompt for the fast flow."""
        history = f"\nPrevious conversation:\n{conversation_history}\n" if conversation_history else ""
        return f"""
You are Mitr AI, a fast, direct, and helpful therapeutic AI companion. Respond quickly and helpfully to the user's message.

User Message: {json.dumps(user_message, ensure_ascii=False)}
{history}
As Mitr AI, provide a direct, practical and supportive response that addresses the user's needs. Be warm and empathetic but get straight to the point.

Important: Keep your response concise and action-oriented.
        """.strip()

    @staticmethod
    def wearables_analysis(data: Dict[str, Any]) -> str:
        """Prompt for health and wellness analysis of wearable data."""
        fmt = PromptFormatter.format_value
        sections = []

        hr = data.get("heartRate")
        if hr:
            sections.append(
                "Heart Rate Data:\n"
                f"- Current: {fmt(hr.get('current'))} bpm\n"
                f"- Resting: {fmt(hr.get('resting'))} bpm\n"
                f"- Max: {fmt(hr.get('max'))} bpm\n"
                f"- HRV: {fmt(hr.get('variability'))} ms\n"
                f"- 24h Trend: {fmt(hr.get('trend'))}"
            )
        sleep = data.get("sleep")
        if sleep:
            sections.append(
                "Sleep Data:\n"
                f"- Duration: {fmt(sleep.get('duration'))} hours\n"
                f"- Quality Score: {fmt(sleep.get('quality'))}/100\n"
                f"- Deep Sleep: {fmt(sleep.get('deepSleep'))} hours\n"
                f"- REM Sleep: {fmt(sleep.get('remSleep'))} hours\n"
                f"- Efficiency: {fmt(sleep.get('efficiency'))}%\n"
                f"- Disturbances: {fmt(sleep.get('disturbances'))}"
            )
        activity = data.get("activity")
        if activity:
            sections.append(
                "Activity Data:\n"
                f"- Steps: {fmt(activity.get('steps'))}\n"
                f"- Calories: {fmt(activity.get('calories'))}\n"
                f"- Active Minutes: {fmt(activity.get('activeMinutes'))}\n"
                f"- Sedentary Minutes: {fmt(activity.get('sedentaryMinutes'))}\n"
                f"- Exercise Type: {fmt(activity.get('exerciseType'))}\n"
                f"- Intensity: {fmt(activity.get('intensity'))}"
            )
        stress = data.get("stress")
        if stress:
            sections.append(
                "Stress Data:\n"
                f"- Level: {fmt(stress.get('level'))}/100\n"
                f"- Trend: {fmt(stress.get('trend'))}\n"
                f"- Recovery Time: {fmt(stress.get('recoveryTime'))} minutes\n"
                f"- Stress Events: {fmt(stress.get('stressEvents'))}"
            )
        env = data.get("environment")
        if env:
            sections.append(
                "Environmental Data:\n"
                f"- Temperature: {fmt(env.get('temperature'))}°C\n"
                f"- Humidity: {fmt(env.get('humidity'))}%\n"
                f"- Air Quality: {fmt(env.get('airQuality'))}\n"
                f"- Noise Level: {fmt(env.get('noiseLevel'))} dB\n"
                f"- Light Exposure: {fmt(env.get('lightExposure'))} lux"
            )
        bio = data.get("biometrics")
        if bio:
            lines = [
                "Biometric Data:",
                f"- Blood Oxygen: {fmt(bio.get('bloodOxygen'))}%",
                f"- Skin Temperature: {fmt(bio.get('skinTemperature'))}°C",
                f"- Respiratory Rate: {fmt(bio.get('respiratoryRate'))} bpm",
            ]
            bp = bio.get("bloodPressure")
            if bp:
                lines.append(f"- Blood Pressure: {fmt(bp.get('systolic'))}/{fmt(bp.get('diastolic'))} mmHg")
            sections.append("\n".join(lines))

        readings = "\n\n".join(sections) if sections else "No sensor readings supplied."
        return f"""
Analyze wearables health data for therapeutic insights and wellness assessment:

{readings}

Device: {fmt(data.get("deviceType"))}
Timestamp: {data.get("timestamp")}

As a therapeutic AI analyzing health data, provide:

1. Overall Wellness Assessment:
   - Comprehensive wellness score (0-100)
   - Trend analysis (improving/stable/declining)
   - Primary health concerns

2. Physical Health Analysis:
   - Cardiovascular health score based on HR, HRV, BP
   - Sleep quality assessment and impact on mental health
   - Activity level evaluation and recommendations
   - Recovery status assessment (excellent/good/fair/poor)

3. Mental Health Indicators:
   - Stress level analysis from HRV, sleep, activity patterns
   - Fatigue assessment from sleep and activity data
   - Mood indicators from biometric patterns
   - Cognitive load estimation

4. Therapeutic Insights:
   - Emotional state inference from physiological data
   - Stress factor identification
   - Current coping capacity assessment
   - Need for immediate therapeutic intervention

5. Recommendations:
   - Immediate actions (next 1-4 hours)
   - Short-term lifestyle changes (next few days)
   - Long-term health improvements (weeks/months)

6. Health Alerts:
   - Any concerning patterns or values
   - Severity assessment (low/medium/high/critical)
   - Recommended actions

Focus on therapeutic relevance and mental health implications of physical health data.
        """.strip()

    @staticmethod
    def context_aware_response(conversation_history: str, user_input: str) -> str:
        """Prompt for a plain conversational reply that keeps context."""
        return f"""
You are Mitr AI, an empathetic and supportive AI therapist. Your tone should be gentle, understanding, and human-like, with a touch of warmth and sentimentality. Engage in a natural, conversational style. Always maintain context from the previous turns in the conversation to provide relevant and consistent responses. Keep your responses concise but ensure they convey care and support.

Conversation History:
{conversation_history}

Latest User Input:
{user_input}

Mitr AI's Response:
        """.strip()

    @staticmethod
    def output_shapes() -> Dict[str, str]:
        """Expected JSON shape per structured prompt, appended by the prompt engine."""
        emotions = '{"<emotion>":<float 0..1>}'
        return {
            "facial_emotion": (
                f'{{"primary":"<emotion>","confidence":<float 0..1>,"emotions":{emotions},'
                '"arousal":<float 0..1>,"valence":<float 0..1>}'
            ),
            "voice_emotion": (
                f'{{"primary":"<emotion>","confidence":<float 0..1>,"emotions":{emotions},'
                '"stress":<float 0..1>,"energy":<float 0..1>}'
            ),
            "text_emotion": (
                f'{{"primary":"<emotion>","confidence":<float 0..1>,"emotions":{emotions},'
                '"sentiment":<float -1..1>,"intensity":<float 0..1>}'
            ),
            "multimodal_fusion": (
                f'{{"primary":"<emotion>","confidence":<float 0..1>,"emotions":{emotions},'
                '"arousal":<float 0..1>,"valence":<float 0..1>,"distressLevel":<float 0..1>,'
                '"recommendations":["<string>"],'
                '"avatarExpression":{"expression":"<string>","intensity":<float 0..1>,"duration":<seconds>}}'
            ),
            "intent_classification": (
                '{"primary":"<intent category>","secondary":["<intent category>"],"confidence":<float 0..1>}'
            ),
            "context_analysis": (
                '{"relevantContext":[{"content":"<string>","relevanceScore":<float 0..1>,"source":"<string>"}],'
                '"therapeuticIntent":{"primary":"<intent category>","secondary":["<intent category>"],"confidence":<float 0..1>},'
                '"responseStrategy":{"approach":"<string>","tone":"<string>","techniques":["<string>"],"avoidances":["<string>"]},'
                '"contextualFactors":{"emotionalState":"<string>","urgencyLevel":"low|medium|high|critical",'
                '"sessionPhase":"opening|exploration|intervention|closure","therapeuticAlliance":<0..100>},'
                '"knowledgeBaseMatches":[],"adaptivePrompt":"<string>"}'
            ),
            "safety_assessment": (
                '{"riskLevel":"low|medium|high|critical","concerns":["<string>"],"actions":["<string>"],'
                '"followUp":<bool>,"urgentIntervention":<bool>}'
            ),
            "therapeutic_response": (
                '{"response":"<string>","interventions":{"immediate":["<string>"],"session":["<string>"],"longTerm":["<string>"]},'
                '"safetyAssessment":{"riskLevel":"low|medium|high|critical","concerns":["<string>"],"actions":["<string>"],"followUp":<bool>}}'
            ),
            "fast_therapist": '{"response":"<string>"}',
            "context_aware_response": '{"response":"<string>"}',
            "wearables_analysis": (
                '{"overallWellness":{"score":<0..100>,"trend":"improving|stable|declining","primaryConcerns":["<string>"]},'
                '"physicalHealth":{"cardiovascularHealth":<0..100>,"sleepQuality":<0..100>,"activityLevel":<0..100>,'
                '"recoveryStatus":"excellent|good|fair|poor"},'
                '"mentalHealth":{"stressLevel":<0..100>,"fatigueLevel":<0..100>,"moodIndicators":{"<mood>":<float>},"cognitiveLoad":<0..100>},'
                '"recommendations":{"immediate":["<string>"],"shortTerm":["<string>"],"longTerm":["<string>"]},'
                '"therapeuticInsights":{"emotionalState":"<string>","stressFactors":["<string>"],"copingCapacity":<0..100>,'
                '"interventionNeeded":<bool>},'
                '"alerts":[{"type":"<string>","severity":"low|medium|high|critical","message":"<string>","action":"<string>"}]}'
            ),
        }

    @staticmethod
    def fallback_messages() -> Dict[str, str]:
        """Static user-facing messages for when generation fails."""
        return {
            "comprehensive_response": "I apologize, but I encountered an issue generating a response. Please try again.",
            "fast_response": "I understand. How can I help you today?",
            "request_failed": "Sorry, I couldn't process your message right now. Please try again later.",
            "no_emotion_analysis": "No emotion analysis available",
            "no_emotion_data": "No emotion data",
            "no_contextual_guidance": "No contextual guidance available",
        }


class PromptFormatter:
    """Helper class for formatting values and conversation windows into prompts."""

    @staticmethod
    def format_value(value: Any) -> str:
        """Render a value for prompt text; missing values read as 'unknown'."""
        if value is None:
            return "unknown"
        if isinstance(value, float):
            return f"{value:g}"
        if isinstance(value, (list, dict)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)

    @staticmethod
    def format_history(turns, window: Optional[int] = None) -> Optional[str]:
        """
        Render the trailing ``window`` turns as ``speaker: message`` lines.

        Returns None when there is nothing to show, so templates can omit the block.
        """
        if not turns:
            return None
        recent = turns[-window:] if window else turns
        return "\n".join(turn.as_line() for turn in recent)

    @staticmethod
    def format_history_detailed(turns) -> List[str]:
        """History lines with timestamp, emotions and intent metadata."""
        lines = []
        for turn in turns:
            lines.append(f"{turn.as_line()} ({turn.timestamp})")
            if turn.emotions:
                lines.append(f"Emotions: {json.dumps(turn.emotions)}")
            if turn.intent:
                lines.append(f"Intent: {turn.intent}")
        return lines

    @staticmethod
    def to_json(model) -> str:
        """Serialise a pydantic model the way the model expects to read it."""
        return model.model_dump_json(by_alias=True, exclude_none=True)
