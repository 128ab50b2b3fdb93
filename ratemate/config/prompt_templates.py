"""
RateMate - Prompt Templates & User-Facing Messages
====================================================
Centralised prompt management for the answer pipeline and the document
endpoints.  All prompts and client-visible strings live here so they can
be reviewed and versioned independently of application logic.

Exports
-------
SYSTEM_PROMPT_TEMPLATE, CORPUS_STATS_TEMPLATE, CONTEXT_PROMPT_TEMPLATE,
DOCUMENT_SYSTEM_PROMPT, DOCUMENT_USER_TEMPLATE, DEFAULT_DOCUMENT_QUESTION,
DEGRADED_ANSWER_TEMPLATE, NO_RESPONSE_CONTENT, CLIENT_NOT_INITIALIZED_ANSWER,
EMPTY_QUESTION_DETAIL, EMBEDDING_ERROR_DETAIL, INTERNAL_ERROR_DETAIL, INVALID_REQUEST_TEMPLATE,
UNSUPPORTED_DOCUMENT_MESSAGE, UNSUPPORTED_IMAGE_TEMPLATE, IMAGE_OK_MESSAGE,
SOURCE_* labels.
"""

# ══════════════════════════════════════════════════════════════════════
#  CHAT SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

CORPUS_STATS_TEMPLATE: str = "Posts: {posts}, Comments: {comments}, Attachments: {attachments}"

SYSTEM_PROMPT_TEMPLATE: str = """You are RateMate, an AI Assistant. Provide concise, helpful answers about mortgage topics.
Users may ask questions about mortgage rates, loan types, refinancing, and other related subjects.
If an image is provided, consider its content in your response if relevant.
Be friendly and professional.
Relevant context from database: {stats}"""


# ══════════════════════════════════════════════════════════════════════
#  RETRIEVED CONTEXT
# ══════════════════════════════════════════════════════════════════════

CONTEXT_PROMPT_TEMPLATE: str = "Relevant information from r/firsttimehomebuyer:\n\n{context}"

CONTEXT_ENTRY_TEMPLATE: str = "SOURCE: {source}\n{content}"

SOURCE_POST_TEMPLATE: str = "Reddit Post: {title}"
SOURCE_COMMENT_TEMPLATE: str = "Comment on Post {post_id}"
SOURCE_ATTACHMENT_TEMPLATE: str = "Document from Post {post_id}"
UNTITLED_POST: str = "Untitled"


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENT QUESTIONS
# ══════════════════════════════════════════════════════════════════════

DEFAULT_DOCUMENT_QUESTION: str = "What is this document about?"

DOCUMENT_SYSTEM_PROMPT: str = "You are RateMate, an AI mortgage assistant. Analyze the provided document content and answer the user's question."

DOCUMENT_USER_TEMPLATE: str = "Here is the document content:\n\n{document}\n\nQuestion: {question}"


# ══════════════════════════════════════════════════════════════════════
#  DEGRADED ANSWERS (delivered as normal answers)
# ══════════════════════════════════════════════════════════════════════

DEGRADED_ANSWER_TEMPLATE: str = "I'm having trouble connecting to the AI service: {reason}. Please try again later."

NO_RESPONSE_CONTENT: str = "No response content."

CLIENT_NOT_INITIALIZED_ANSWER: str = "AI service client not initialized. Cannot generate AI response."


# ══════════════════════════════════════════════════════════════════════
#  ERROR DETAILS
# ══════════════════════════════════════════════════════════════════════

EMPTY_QUESTION_DETAIL: str = "Question cannot be empty if no image is provided"

EMBEDDING_ERROR_DETAIL: str = "Failed to process question due to embedding error."

INTERNAL_ERROR_DETAIL: str = "An internal server error occurred."

INVALID_REQUEST_TEMPLATE: str = "Invalid request: {errors}"

NO_FILE_MESSAGE: str = "No file provided"

UNSUPPORTED_DOCUMENT_MESSAGE: str = "Unsupported file type. Please upload a PDF or DOCX file."

DOCUMENT_ERROR_MESSAGE: str = "Error processing document"

UNSUPPORTED_IMAGE_TEMPLATE: str = "File type not supported. Allowed types: .png, .jpg, .jpeg. Received: {content_type}"

NO_IMAGE_MESSAGE: str = "No file uploaded."

IMAGE_OK_MESSAGE: str = "Image processed successfully"

IMAGE_ERROR_TEMPLATE: str = "Error processing image: {reason}"
