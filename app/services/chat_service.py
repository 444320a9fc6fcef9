"""
Chat Service
Keyword-based support assistant

Classifies a message into one of twelve intents by first substring match,
scores sentiment from fixed word lists, and answers from canned templates.
"""

from typing import Any, Dict, List, Optional

from supabase import Client

from app.core.logging import logger
from app.models.chat import FAQ, ChatResponse, QuickAction


# Checked in insertion order; first keyword hit wins
INTENT_PATTERNS: Dict[str, List[str]] = {
    "conectar_meta": [
        "conectar meta", "facebook ads", "meta ads", "adicionar meta",
        "vincular facebook", "integrar meta", "conta meta", "conta facebook",
    ],
    "conectar_google": [
        "conectar google", "google ads", "adicionar google", "vincular google",
        "integrar google", "conta google",
    ],
    "ver_metricas": [
        "ver métricas", "ver resultados", "visualizar dados", "métricas",
        "resultados", "performance", "estatísticas", "números", "dashboard",
    ],
    "problema_sincronizacao": [
        "não sincroniza", "erro de sincronização", "sincronização", "não atualiza",
        "dados desatualizados", "não carrega", "erro ao carregar", "problema conexão",
    ],
    "criar_dashboard": [
        "criar dashboard", "novo dashboard", "personalizar dashboard",
        "configurar dashboard", "montar dashboard",
    ],
    "exportar_dados": [
        "exportar", "download", "baixar dados", "exportar relatório",
        "gerar relatório", "salvar dados",
    ],
    "ajuda_campanha": [
        "campanha", "criar campanha", "editar campanha", "anúncios",
        "ads", "otimizar campanha", "melhorar campanha",
    ],
    "duvida_cobranca": [
        "cobrança", "pagamento", "plano", "assinatura", "fatura",
        "preço", "valor", "cancelar", "upgrade",
    ],
    "sugestao_recurso": [
        "sugestão", "sugerir", "gostaria de", "seria bom ter",
        "poderia adicionar", "novo recurso", "funcionalidade",
    ],
    "saudacao": [
        "oi", "olá", "bom dia", "boa tarde", "boa noite", "hey", "e aí",
    ],
    "agradecimento": [
        "obrigado", "obrigada", "valeu", "thanks", "agradeço", "grato",
    ],
    "general": [],
}

NEGATIVE_WORDS = [
    "não funciona", "erro", "problema", "bug", "ruim", "péssimo",
    "horrível", "lento", "travando", "frustrado", "decepcionado",
]

POSITIVE_WORDS = [
    "ótimo", "excelente", "maravilhoso", "perfeito", "adorei",
    "incrível", "legal", "bom", "funciona bem", "satisfeito",
]

EMPATHY_PREFIX = "Percebo que você está frustrado. Vou fazer o meu melhor para ajudar!\n\n"

INTENT_RESPONSES: Dict[str, Dict[str, Any]] = {
    "conectar_meta": {
        "message": (
            "Para conectar sua conta Meta Ads, siga estes passos:\n\n"
            "1. Vá em **Configurações > Fontes de Dados**\n"
            "2. Clique em \"Conectar Meta Ads\"\n"
            "3. Faça login com sua conta do Facebook\n"
            "4. Autorize o acesso às suas contas de anúncios\n\n"
            "Posso te ajudar com algum problema específico na conexão?"
        ),
        "suggestions": [
            "Estou tendo erro ao conectar",
            "Não vejo minhas contas de anúncio",
            "Preciso reconectar minha conta",
        ],
        "quick_actions": [{"label": "Ir para Configurações", "action": "navigate:/settings"}],
    },
    "conectar_google": {
        "message": (
            "Para conectar sua conta Google Ads:\n\n"
            "1. Acesse **Configurações > Fontes de Dados**\n"
            "2. Clique em \"Conectar Google Ads\"\n"
            "3. Faça login com sua conta Google\n"
            "4. Selecione as contas que deseja sincronizar\n\n"
            "Precisa de mais informações?"
        ),
        "suggestions": [
            "Posso conectar várias contas?",
            "Como funciona a sincronização?",
        ],
    },
    "ver_metricas": {
        "message": (
            "Você pode visualizar suas métricas de várias formas:\n\n"
            "📊 **Dashboard Principal** - Visão geral de todas campanhas\n"
            "📈 **Análise de Campanhas** - Métricas detalhadas por campanha\n"
            "📉 **Relatórios Customizados** - Crie dashboards personalizados\n\n"
            "O que você gostaria de visualizar especificamente?"
        ),
        "suggestions": [
            "Ver métricas de hoje",
            "Comparar últimos 7 dias",
            "Criar relatório customizado",
        ],
        "quick_actions": [{"label": "Ir para Dashboard", "action": "navigate:/dashboard"}],
    },
    "problema_sincronizacao": {
        "message": (
            "Entendo que você está tendo problemas com a sincronização. Vamos resolver isso!\n\n"
            "**Verificações rápidas:**\n"
            "✓ Sua conta está conectada corretamente?\n"
            "✓ Tem dados nas últimas 24h?\n"
            "✓ As permissões estão corretas?\n\n"
            "Posso te ajudar a diagnosticar melhor. Qual o erro específico que está vendo?"
        ),
        "suggestions": [
            "Dados não aparecem",
            "Erro ao sincronizar",
            "Dados desatualizados",
            "Reconectar conta",
        ],
        "quick_actions": [{"label": "Verificar Status", "action": "navigate:/settings/data-sources"}],
    },
    "criar_dashboard": {
        "message": (
            "Criar um dashboard personalizado é fácil!\n\n"
            "1. Vá em **Dashboards > Criar Novo**\n"
            "2. Selecione as métricas que deseja acompanhar\n"
            "3. Escolha o período e filtros\n"
            "4. Personalize a visualização\n"
            "5. Salve seu dashboard\n\n"
            "Que tipo de dados você quer visualizar?"
        ),
        "suggestions": [
            "Dashboard de campanhas ativas",
            "Dashboard de ROI",
            "Dashboard comparativo",
            "Dashboard por período",
        ],
        "quick_actions": [{"label": "Criar Dashboard", "action": "navigate:/dashboards/new"}],
    },
    "exportar_dados": {
        "message": (
            "Você pode exportar seus dados em vários formatos:\n\n"
            "📄 **CSV** - Para análise no Excel/Google Sheets\n"
            "📊 **PDF** - Relatórios formatados\n"
            "📈 **JSON** - Integração com outras ferramentas\n\n"
            "Vá em qualquer dashboard e clique no botão \"Exportar\" no canto superior direito."
        ),
        "suggestions": [
            "Como exportar em CSV?",
            "Posso agendar exportações?",
            "Exportar dados históricos",
        ],
    },
    "ajuda_campanha": {
        "message": (
            "Posso te ajudar com suas campanhas!\n\n"
            "**Recursos disponíveis:**\n"
            "🎯 Análise detalhada de campanhas\n"
            "💡 Sugestões de otimização\n"
            "📊 Comparação de performance\n"
            "🔍 Análise de criativos\n\n"
            "O que você precisa fazer com suas campanhas?"
        ),
        "suggestions": [
            "Analisar performance",
            "Ver sugestões de otimização",
            "Comparar campanhas",
            "Verificar criativos",
        ],
        "quick_actions": [{"label": "Ver Campanhas", "action": "navigate:/campaigns"}],
    },
    "duvida_cobranca": {
        "message": (
            "Para questões sobre cobrança e assinatura:\n\n"
            "💳 Acesse **Configurações > Assinatura e Cobrança**\n\n"
            "Lá você pode:\n"
            "- Ver seu plano atual\n"
            "- Atualizar forma de pagamento\n"
            "- Fazer upgrade/downgrade\n"
            "- Ver histórico de faturas\n"
            "- Cancelar assinatura\n\n"
            "Precisa de ajuda específica com cobrança?"
        ),
        "suggestions": [
            "Ver meu plano",
            "Atualizar plano",
            "Problemas com pagamento",
            "Cancelar assinatura",
        ],
        "quick_actions": [{"label": "Ir para Cobrança", "action": "navigate:/settings/billing"}],
    },
    "sugestao_recurso": {
        "message": (
            "Adoramos receber sugestões! 🎉\n\n"
            "Sua opinião é muito importante para melhorarmos o AdsOPS.\n\n"
            "**Como sugerir:**\n"
            "1. Descreva o recurso que você gostaria\n"
            "2. Explique como isso te ajudaria\n"
            "3. Envie para: suporte@adsops.com\n\n"
            "Ou use o botão abaixo para enviar diretamente!"
        ),
        "suggestions": [],
        "quick_actions": [
            {"label": "Enviar Sugestão", "action": "email:suporte@adsops.com?subject=Sugestão de Recurso"}
        ],
    },
    "saudacao": {
        "message": (
            "Olá! 👋 Bem-vindo ao suporte AdsOPS!\n\n"
            "Sou seu assistente virtual e estou aqui para ajudar.\n\n"
            "**Como posso te ajudar hoje?**"
        ),
        "suggestions": [
            "Conectar Meta Ads",
            "Ver minhas métricas",
            "Problema com sincronização",
            "Criar dashboard personalizado",
        ],
    },
    "agradecimento": {
        "message": (
            "Por nada! 😊 Fico feliz em ajudar!\n\n"
            "Se precisar de mais alguma coisa, é só chamar. Estou aqui para isso!"
        ),
        "suggestions": [
            "Tenho outra dúvida",
            "Ver perguntas frequentes",
        ],
    },
    "general": {
        "message": (
            "Entendi sua mensagem. Para te ajudar melhor, você pode:\n\n"
            "📚 Explorar nossa **Central de Ajuda**\n"
            "❓ Ver **Perguntas Frequentes**\n"
            "📧 Enviar email para: **suporte@adsops.com**\n\n"
            "Ou me diga mais sobre o que você precisa, vou tentar ajudar!"
        ),
        "suggestions": [
            "Ver perguntas frequentes",
            "Falar com humano",
            "Enviar email",
        ],
    },
}

INTENT_TO_FAQ_CATEGORY: Dict[str, str] = {
    "conectar_meta": "connections",
    "conectar_google": "connections",
    "ver_metricas": "metrics",
    "problema_sincronizacao": "troubleshooting",
    "criar_dashboard": "dashboards",
    "exportar_dados": "export",
    "ajuda_campanha": "campaigns",
    "duvida_cobranca": "billing",
    "sugestao_recurso": "features",
    "saudacao": "general",
    "agradecimento": "general",
    "general": "general",
}

FAQS: Dict[str, List[Dict[str, str]]] = {
    "connections": [
        {"id": "1", "question": "Como conectar minha conta Meta Ads?"},
        {"id": "2", "question": "Posso conectar múltiplas contas?"},
    ],
    "troubleshooting": [
        {"id": "3", "question": "Por que meus dados não aparecem?"},
        {"id": "4", "question": "Como resolver erro de sincronização?"},
    ],
    "dashboards": [
        {"id": "5", "question": "Como criar um dashboard personalizado?"},
        {"id": "6", "question": "Posso salvar meus dashboards?"},
    ],
}


class ChatService:
    """Support chat: intent detection, canned replies and conversation log"""

    def __init__(self, supabase: Optional[Client] = None):
        """
        Args:
            supabase: Client used to persist conversations (optional)
        """
        self.supabase = supabase

    def detect_intent(self, message: str) -> str:
        lower = message.lower().strip()

        for intent, patterns in INTENT_PATTERNS.items():
            for pattern in patterns:
                if pattern in lower:
                    return intent

        return "general"

    def analyze_sentiment(self, message: str) -> str:
        lower = message.lower()

        if any(word in lower for word in NEGATIVE_WORDS):
            return "negative"
        if any(word in lower for word in POSITIVE_WORDS):
            return "positive"
        return "neutral"

    def generate_response(self, message: str) -> ChatResponse:
        """
        Classify a message and build the templated reply.

        Negative messages get an empathy prefix, except sync problems whose
        template already acknowledges the issue.
        """
        intent = self.detect_intent(message)
        sentiment = self.analyze_sentiment(message)
        template = INTENT_RESPONSES[intent]

        text = template["message"]
        if sentiment == "negative" and intent != "problema_sincronizacao":
            text = EMPATHY_PREFIX + text

        logger.debug(f"[CHAT] intent={intent} sentiment={sentiment}")

        return ChatResponse(
            message=text,
            intent=intent,
            sentiment=sentiment,
            suggestions=list(template.get("suggestions", [])),
            quick_actions=[QuickAction(**qa) for qa in template.get("quick_actions", [])],
        )

    def save_conversation(
        self,
        user_id: str,
        workspace_id: Optional[str],
        user_message: str,
        response: ChatResponse,
    ) -> None:
        """Store the exchange in chat_conversations; failures are only logged"""
        if self.supabase is None:
            logger.warning("[CHAT] No Supabase client, conversation not saved")
            return

        try:
            self.supabase.table("chat_conversations").insert({
                "workspace_id": workspace_id,
                "user_id": user_id,
                "message": user_message,
                "response": response.message,
                "intent": response.intent,
                "sentiment": response.sentiment,
                "context": {
                    "suggestions": response.suggestions,
                    "quickActions": [qa.model_dump() for qa in response.quick_actions],
                },
            }).execute()
        except Exception as e:
            logger.error(f"[CHAT] Failed to save conversation: {e}")

    def get_conversation_history(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest-first conversation rows for a user ([] on error)"""
        if self.supabase is None:
            return []

        try:
            result = self.supabase.table("chat_conversations")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(limit)\
                .execute()
            return result.data or []
        except Exception as e:
            logger.error(f"[CHAT] Failed to load history: {e}")
            return []

    def get_related_faqs(self, intent: str) -> List[FAQ]:
        category = INTENT_TO_FAQ_CATEGORY.get(intent, "general")
        return [FAQ(**faq) for faq in FAQS.get(category, [])]


# Global chat service instance
_chat_service: Optional[ChatService] = None


def get_chat_service(supabase: Optional[Client] = None) -> ChatService:
    """Get or create global chat service instance"""
    global _chat_service

    if _chat_service is None:
        _chat_service = ChatService(supabase)
    elif supabase is not None and _chat_service.supabase is not supabase:
        _chat_service.supabase = supabase

    return _chat_service
