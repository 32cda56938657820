"""
Centralized prompts and response schemas for dialogue generation.

Keeping the prompt text in one place makes it easier to tune wording
without touching the orchestration code.
"""

import json
from typing import Any, Dict, List, Optional, Union


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

DIALOGUE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "characters": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"name": {"type": "string"}, "role": {"type": "string"}},
                "required": ["name", "role"],
            },
        },
        "dialogue": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"speaker": {"type": "string"}, "content": {"type": "string"}},
                "required": ["speaker", "content"],
            },
        },
        "summary": {"type": "string"},
    },
    "required": ["characters", "dialogue", "summary"],
}

QA_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "relevanceScore": {"type": "number"},
        "isRelevant": {"type": "boolean"},
        "response": {"type": "string"},
        "responseType": {"type": "string"},
        "suggestedQuestions": {"type": "array", "items": {"type": "string"}},
        "sources": {"type": "array", "items": {"type": "string"}},
        "searchQueries": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["relevanceScore", "isRelevant", "response", "responseType"],
}

SUGGESTIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"questions": {"type": "array", "items": {"type": "string"}}},
    "required": ["questions"],
}

QA_CONTENT_LIMIT = 1500
QA_HISTORY_LIMIT = 800
SUGGESTIONS_CONTENT_LIMIT = 1500
SUGGESTIONS_DIALOGUE_LIMIT = 1000


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + '...' if len(text) > limit else text


class DialoguePrompts:
    """Collection of prompts for turning news into a group chat."""

    # =============================================================================
    # SHARED RULES
    # =============================================================================

    @staticmethod
    def _conversation_style(user_name: str) -> str:
        return f"""**Conversation Style:**
1. Friend group: Everyone's friends, chatting naturally and casually
2. User role ("{user_name}"): Loves gossip, asks curious follow-up questions
3. News figures: Share insider stories and personal experiences
4. Multi-character interaction: News figures also chat with each other
5. Content delivery: Based on facts, each response includes 2-3 specific info points"""

    # =============================================================================
    # DIALOGUE GENERATION
    # =============================================================================

    @staticmethod
    def dialogue_json_lines(news_title: str, news_content: str, user_name: Optional[str] = None) -> str:
        """Dialogue prompt whose answer is one JSON object per line, ending with a summary line."""
        user_name = user_name or 'User'
        return f"""Transform this news article into a natural friend group chat conversation.

**Character Identification:**
1. Identify ALL key figures mentioned in the news (not just 2-3)
2. Include everyone who plays a significant role in the story
3. Use their full names as they appear in the article
4. If no specific individuals: use media/organization representatives
5. More characters = richer conversation

{DialoguePrompts._conversation_style(user_name)}

**Key Rules:**
1. User is called "{user_name}", others use full names from the article
2. Conversation length: 15-25 exchanges (adjust based on number of characters)
3. Information completeness: All data, times, locations must be mentioned
4. Let each character contribute their unique perspective

**Output Format:**
- Each line = ONE complete JSON object
- Message format: {{"speaker":"[full name]","content":"[message text]"}}
- Final line format: {{"summary":"[brief summary]"}}
- NO markdown blocks, NO explanatory text
- Output ONLY JSON lines

---

**Article Title:** {news_title}

**Article Content:**
{news_content}

---

START OUTPUT (JSON lines only):"""

    @staticmethod
    def dialogue_full(news_title: str, news_content: str, user_name: Optional[str] = None) -> str:
        """Dialogue prompt answered as a single JSON document matching DIALOGUE_SCHEMA."""
        user_name = user_name or 'User'
        return f"""Transform this news article into a natural friend group chat conversation.

**Character Identification:**
1. Identify key figures from the news using their full names
2. Naming rules:
   - Prioritize real people's full names
   - Use media identities if needed (e.g., Bloomberg Reporter, WSJ Journalist)
   - Avoid: Simplified names, company names, conjunctions

{DialoguePrompts._conversation_style(user_name)}

**Key Rules:**
1. Character naming: User is called "{user_name}", others must use full names
2. Conversation structure: 10-18 exchanges, covering all 5W1H elements
3. Information completeness: All data, times, locations must be mentioned

Output in JSON format:
{{
  "characters": [
    {{"name": "{user_name}", "role": "The curious friend"}},
    {{"name": "Full Name", "role": "Role description"}}
  ],
  "dialogue": [
    {{"speaker": "{user_name}", "content": "Question or comment"}},
    {{"speaker": "Full Name", "content": "Response with details"}}
  ],
  "summary": "Brief summary"
}}

Title: {news_title}
Content: {news_content}"""

    # =============================================================================
    # FOLLOW-UP QUESTIONS
    # =============================================================================

    @staticmethod
    def question_answer(question: str, news_content: Optional[str], news_title: Optional[str],
                        qa_history: Optional[str] = None) -> str:
        """Q&A prompt with relevance scoring; context is truncated to keep the prompt small."""
        base_prompt = """You are a professional news analysis assistant. The user is reading a news article and has follow-up questions about it.

**Relevance Scoring Criteria (0-100 scale):**
- 90-100: Directly discusses people, events, data, or details from the news
- 80-89: Questions about impact, background, causes, or future developments
- 70-79: Related industries, competitors, or similar event comparisons
- 60-69: Broader topic discussions
- 50-59: Indirectly related
- Below 50: No clear connection to the news topic

**Response Strategy:**
- 70+: Provide a complete answer (max 80 words, 3-4 sentences)
- 50-69: Provide a brief answer and guide back to the news topic (max 50 words, 2-3 sentences)
- Below 50: Politely decline and offer 2-3 suggested questions

**Response Format Requirement:**
Answer using the following JSON format:
{
  "relevanceScore": 85,
  "isRelevant": true,
  "response": "Your answer content",
  "responseType": "full|brief|rejected",
  "suggestedQuestions": ["Suggested question 1", "Suggested question 2"],
  "sources": ["Up to 6 source URLs"],
  "searchQueries": ["Up to 6 search keywords"]
}

Note: Do not list sources in your response; sources are for system logging only."""

        context_info = ''
        if news_content and news_title:
            context_info = f"""

**News Title:** {news_title}

**News Content:**
{_truncate(news_content, QA_CONTENT_LIMIT)}"""

        if qa_history and qa_history.strip():
            context_info += f"""

**Q&A History:**
{_truncate(qa_history, QA_HISTORY_LIMIT)}"""

        return f"""{base_prompt}{context_info}

**User Question:**
{question}"""

    @staticmethod
    def suggested_questions(dialogue: Union[str, List[Dict[str, Any]]], news_content: str, news_title: str) -> str:
        """Ask for 3-5 short follow-up questions."""
        if not isinstance(dialogue, str):
            dialogue = json.dumps(dialogue, ensure_ascii=False)

        return f"""Based on the news content and generated conversation, suggest 3-5 insightful follow-up questions.

**Question Quality Requirements:**
1. Relevant to news content and conversation context
2. Encourage deeper exploration of the topic
3. Avoid yes/no questions, focus on open-ended inquiries
4. Cover different aspects: impact, background, future developments, related events
5. **Keep questions SHORT and DIRECT (10-20 words maximum)**
6. **Use simple, conversational language**
7. **Ask ONE thing per question**

**Output Format:**
Return in JSON format:
{{
  "questions": [
    "Short, direct question 1?",
    "Short, direct question 2?",
    "Short, direct question 3?"
  ]
}}

News Title: {news_title}
News Content:
{(news_content or '')[:SUGGESTIONS_CONTENT_LIMIT]}...

Generated Conversation:
{dialogue[:SUGGESTIONS_DIALOGUE_LIMIT]}..."""
